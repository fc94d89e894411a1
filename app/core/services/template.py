"""
Email templates: a cached file store and a small placeholder renderer.

Templates are plain HTML files under the email template directory, named
``<name>.html``. The markup understands three directives:

    {{#if flag}}...{{/if}}          kept when ``data["flag"]`` is truthy
    {{#unless flag}}...{{/unless}}  kept when ``data["flag"]`` is falsy
    {{name}}                        replaced by ``str(data["name"])``

Blocks do not nest. Anything else between braces (``{{> partial}}``, an
unclosed block) is left in the output untouched.
"""

import html
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from app.core.config import template_logger

BASE_TEMPLATE = "base"

_BLOCK_RE = re.compile(
    r"\{\{#(?P<kind>if|unless)\s+(?P<name>\w+)\s*\}\}"
    r"(?P<body>.*?)"
    r"\{\{/(?P=kind)\}\}",
    re.DOTALL,
)
_VARIABLE_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class TemplateStore:
    """
    Loads raw template text from disk and caches it by name.

    The cache only grows until ``clear_cache()`` is called, so edited
    templates are picked up in development without a restart.
    """

    def __init__(self, template_dir: str):
        self.template_dir = template_dir
        # Only the loader is used; templates are never compiled by jinja2
        self._env = Environment(loader=FileSystemLoader(template_dir))
        self._cache: dict[str, str] = {}

    def load(self, name: str) -> str | None:
        """
        Return the text of ``<name>.html``.

        Args:
            name (str): Template name without extension.

        Returns:
            str | None: The template text, or None if the file does not exist
                or the name points outside the template directory.
        """
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        try:
            source, _, _ = self._env.loader.get_source(  # type: ignore[union-attr]
                self._env, f"{name}.html"
            )
        except TemplateNotFound:
            template_logger.warning(
                f"Email template '{name}' not found in {self.template_dir}"
            )
            return None

        self._cache[name] = source
        return source

    def clear_cache(self) -> None:
        self._cache.clear()
        template_logger.info("Email template cache cleared")


class TemplateRenderer:
    """Renders templates from a ``TemplateStore`` into complete HTML emails."""

    def __init__(self, store: TemplateStore, website_url: str):
        self.store = store
        self.website_url = website_url

    @staticmethod
    def render(text: str | None, data: Mapping[str, Any] | None = None) -> str:
        """
        Substitute conditional blocks, then variables.

        Args:
            text (str | None): Template text. None renders as "".
            data (Mapping[str, Any] | None): Values for flags and placeholders.

        Returns:
            str: The rendered text. Values are inserted verbatim.
        """
        if text is None:
            return ""
        data = data or {}

        def _block(match: re.Match) -> str:
            truthy = bool(data.get(match.group("name")))
            keep = truthy if match.group("kind") == "if" else not truthy
            return match.group("body") if keep else ""

        def _variable(match: re.Match) -> str:
            value = data.get(match.group(1))
            return "" if value is None else str(value)

        text = _BLOCK_RE.sub(_block, text)
        return _VARIABLE_RE.sub(_variable, text)

    def compose(
        self, content_template: str, data: Mapping[str, Any] | None = None
    ) -> str:
        """
        Render a content template and wrap it in the base layout.

        The base layout receives ``website_url`` and ``year`` defaults, the
        caller's data on top of them, and the rendered content as
        ``content``. Without a base layout the rendered content is returned
        alone. Never raises: on any error a minimal document holding only
        the escaped subject is returned.

        Args:
            content_template (str): Name of the content template.
            data (Mapping[str, Any] | None): Template data; ``subject`` is
                used for the fallback document.

        Returns:
            str: The final HTML document.
        """
        data = dict(data or {})
        try:
            content = self.render(self.store.load(content_template), data)

            base = self.store.load(BASE_TEMPLATE)
            if base is None:
                return content

            context = {
                "website_url": self.website_url,
                "year": datetime.now(timezone.utc).year,
                **data,
                "content": content,
            }
            return self.render(base, context)
        except Exception as e:
            template_logger.error(
                f"Failed to compose email template '{content_template}': {e}"
            )
            subject = html.escape(str(data.get("subject") or ""))
            return f"<html><body><p>{subject}</p></body></html>"
