"""Template substitution engines."""

from __future__ import annotations

from .jinja import JinjaEngine
from .placeholder import PlaceholderEngine

__all__ = ["JinjaEngine", "PlaceholderEngine"]
