"""Runtime version metadata for the Munchy stream tracker.

Import-safe: exposes version identifiers without side effects.
"""

from __future__ import annotations

PROJECT_NAME = "Munchy Stream Tracker"
VERSION = "v1.0.0"
BUILD = "2026.10"
LICENSE = "MIT"

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "BUILD",
    "LICENSE",
    "as_dict",
    "as_string",
]


def as_dict() -> dict[str, str]:
    """Return version metadata as a dictionary."""

    return {
        "project": PROJECT_NAME,
        "version": VERSION,
        "build": BUILD,
        "license": LICENSE,
    }


def as_string() -> str:
    """Return a concise version string."""

    return f"{PROJECT_NAME} {VERSION} (Build {BUILD})"
