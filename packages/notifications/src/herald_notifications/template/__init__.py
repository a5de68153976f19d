"""Template rendering components."""

from __future__ import annotations

from .engines.jinja import JinjaEngine
from .engines.placeholder import PlaceholderEngine
from .renderer import TemplateRenderer

__all__ = [
    "JinjaEngine",
    "PlaceholderEngine",
    "TemplateRenderer",
]
