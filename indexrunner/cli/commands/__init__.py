"""CLI command modules."""

from . import build_cmd, new_cmd

__all__ = [
    "build_cmd",
    "new_cmd",
]
