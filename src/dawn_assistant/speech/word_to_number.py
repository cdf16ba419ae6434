"""Spoken English numbers to floats ("one point five" -> 1.5)."""

from __future__ import annotations

import re

UNITS = {
    "zero": 0,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
}

TEENS = {
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
}

TENS = {
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
}

MAGNITUDES = {
    "thousand": 1_000,
    "million": 1_000_000,
    "billion": 1_000_000_000,
    "trillion": 1_000_000_000_000,
}

HUNDRED = "hundred"
POINT = "point"


def parse_numerical_word(token: str) -> int:
    """Value of a single number word below one hundred; 0 when unknown."""
    return UNITS.get(token, TEENS.get(token, TENS.get(token, 0)))


def words_to_number(text: str) -> float:
    """Convert a spoken number to a float.

    Integer words accumulate into a segment that ``hundred`` multiplies and
    each larger magnitude flushes into the result. After ``point`` every
    token is one decimal digit. Unknown words count as zero, so entirely
    unrecognized input gives 0.0. Plain numerals such as "1.5" are accepted
    as they are.
    """
    try:
        return float(text.strip())
    except ValueError:
        pass

    result = 0
    segment = 0
    fraction_digits: list[str] | None = None
    for token in re.split(r"[\s-]+", text.lower()):
        token = token.strip(".,!?")
        if not token:
            continue
        if fraction_digits is not None:
            fraction_digits.append(str(UNITS.get(token, 0)))
        elif token == POINT:
            fraction_digits = []
        elif token == HUNDRED:
            segment *= 100
        elif token in MAGNITUDES:
            result += segment * MAGNITUDES[token]
            segment = 0
        else:
            segment += parse_numerical_word(token)

    number = float(result + segment)
    if fraction_digits:
        number += float("0." + "".join(fraction_digits))
    return number
