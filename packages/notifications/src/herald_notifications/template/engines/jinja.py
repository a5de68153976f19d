"""Jinja2 template engine."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import lru_cache

from jinja2 import Environment, Template, TemplateError, Undefined

from ...exceptions import TemplateEngineError
from ...ports.renderer import ITemplateEngine

logger = logging.getLogger("herald.template")


class JinjaEngine(ITemplateEngine):
    """
    Renders templates with Jinja2 for loops, conditionals and filters.

    Undefined names render as empty strings, matching the placeholder engine,
    and autoescaping is off because channel content is not always HTML.
    Syntax and runtime template errors are raised as
    :class:`TemplateEngineError`.
    """

    def __init__(self, cache_size: int = 256) -> None:
        self._env = Environment(undefined=Undefined, autoescape=False, keep_trailing_newline=True)
        self._compile = lru_cache(maxsize=cache_size)(self._env.from_string)

    def substitute(self, source: str, variables: Mapping[str, str]) -> str:
        try:
            template: Template = self._compile(source)
            return template.render(**variables)
        except TemplateError as e:
            logger.error("Jinja2 rendering failed: %s", e)
            raise TemplateEngineError(f"{type(e).__name__}: {e}") from e
