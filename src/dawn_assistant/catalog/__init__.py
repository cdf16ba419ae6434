"""Command catalog: declarative config in, searchable command table out."""

from .compiler import CommandCatalog, compile_catalog, load_catalog, parse_catalog, substitute
from .matching import CommandMatch, CommandMatcher, extract_value, render_command, wildcard_to_regex
from .models import ActionType, AudioDeviceKind, CatalogFile, CompiledCommand, Device, SubAction

__all__ = [
    "ActionType",
    "AudioDeviceKind",
    "CatalogFile",
    "CommandCatalog",
    "CommandMatch",
    "CommandMatcher",
    "CompiledCommand",
    "Device",
    "SubAction",
    "compile_catalog",
    "extract_value",
    "load_catalog",
    "parse_catalog",
    "render_command",
    "substitute",
    "wildcard_to_regex",
]
