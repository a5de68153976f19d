"""Zero-dependency placeholder engine."""

from __future__ import annotations

import re
from collections.abc import Mapping

from ...ports.renderer import ITemplateEngine

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.\-]*)\s*\}\}")


class PlaceholderEngine(ITemplateEngine):
    """
    Literal ``{{ name }}`` replacement keyed by variable name.

    Substitution is a single pass: values are inserted verbatim and never
    rescanned, so a value containing ``{{ x }}`` stays as written. Unknown
    names resolve to an empty string.
    """

    def substitute(self, source: str, variables: Mapping[str, str]) -> str:
        return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1), ""), source)

    @staticmethod
    def placeholders(source: str) -> set[str]:
        """Names referenced by *source*."""
        return set(_PLACEHOLDER.findall(source))
