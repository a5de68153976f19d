"""TemplateRenderer — looks up a template version and renders it."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from ..delivery import RenderedNotification
from ..exceptions import TemplateEngineError, TemplateRenderError, TemplateRenderErrorKind
from .engines.placeholder import PlaceholderEngine

if TYPE_CHECKING:
    from ..channel import NotificationChannel
    from ..ports.renderer import ITemplateEngine, NotificationTemplate
    from ..ports.store import IConfigurationStore

logger = logging.getLogger("herald.template")


class TemplateRenderer:
    """
    Resolves the template for (tenant, channel, name, language) and renders it.

    Lookup falls back to ``fallback_language`` when the requested language
    has no template. Rendering is a pure function of the template version and
    the variables, and fails fast, before any provider call, when a declared
    required variable is missing.
    """

    def __init__(
        self,
        store: IConfigurationStore,
        engine: ITemplateEngine | None = None,
        *,
        fallback_language: str = "en",
    ) -> None:
        self._store = store
        self._engine = engine or PlaceholderEngine()
        self._fallback_language = fallback_language

    async def lookup(
        self,
        tenant_id: str,
        channel: NotificationChannel,
        template_name: str,
        language: str,
    ) -> NotificationTemplate:
        template = await self._store.get_template(tenant_id, channel, template_name, language)
        if template is None and language != self._fallback_language:
            template = await self._store.get_template(
                tenant_id, channel, template_name, self._fallback_language
            )
        if template is None:
            raise TemplateRenderError(TemplateRenderErrorKind.TEMPLATE_NOT_FOUND, template_name)
        return template

    async def render(
        self,
        tenant_id: str,
        channel: NotificationChannel,
        template_name: str,
        language: str,
        variables: Mapping[str, str],
    ) -> RenderedNotification:
        template = await self.lookup(tenant_id, channel, template_name, language)
        return self.render_template(template, variables)

    def render_template(
        self,
        template: NotificationTemplate,
        variables: Mapping[str, str],
    ) -> RenderedNotification:
        """Render an already resolved template version."""
        missing = template.required_variables - set(variables)
        if missing:
            raise TemplateRenderError(
                TemplateRenderErrorKind.MISSING_VARIABLE, template.name, missing
            )

        try:
            subject = None
            if template.subject_template:
                subject = self._engine.substitute(template.subject_template, variables)
            body = self._engine.substitute(template.body_template, variables)
        except TemplateEngineError as e:
            raise TemplateRenderError(
                TemplateRenderErrorKind.INVALID_TEMPLATE, template.name, reason=str(e)
            ) from e

        body_html = None
        lowered = body.lower()
        if "<html" in lowered or "<body" in lowered:
            body_html = body

        logger.debug("Rendered %s v%d for %s", template.name, template.version, template.channel.value)
        return RenderedNotification(
            body_text=body,
            subject=subject,
            body_html=body_html,
            template_name=template.name,
            template_version=template.version,
        )
