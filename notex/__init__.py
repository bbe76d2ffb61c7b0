"""NoteX package initialisation."""

from __future__ import annotations

from .settings import settings

__version__ = "0.1.0"

__all__ = ["settings", "__version__"]
