"""Whole-program model and type checker for TypeScript sources."""

from .checker import TypeChecker
from .program import Declaration, Program
from .render import type_to_display_string, type_to_string

__all__ = [
    "Declaration",
    "Program",
    "TypeChecker",
    "type_to_display_string",
    "type_to_string",
]
