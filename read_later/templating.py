"""Jinja2 environment for article export templates."""

from __future__ import annotations

from typing import Optional

import bleach
from jinja2 import Environment, PackageLoader, select_autoescape
from markdown_it import MarkdownIt
from markupsafe import Markup, escape

# Notes are user-written markdown; only structural markup survives.
ALLOWED_TAGS = frozenset(
    {
        "p",
        "ul",
        "ol",
        "li",
        "strong",
        "em",
        "b",
        "i",
        "br",
        "a",
        "code",
        "pre",
        "blockquote",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
    }
)
ALLOWED_ATTRIBUTES = {"a": ["href", "title"]}

_MARKDOWN = MarkdownIt("commonmark", {"breaks": True, "html": False})
_CLEANER = bleach.Cleaner(
    tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True
)
_ENV: Optional[Environment] = None


def _nl2br(value: Optional[str]) -> Markup:
    """Escape article text and keep its line breaks as <br>."""
    if not value:
        return Markup("")
    return Markup("<br>").join(escape(line) for line in value.splitlines())


def _render_markdown(value: Optional[str]) -> Markup:
    if not value:
        return Markup("")
    return Markup(_CLEANER.clean(_MARKDOWN.render(value)))


def get_environment() -> Environment:
    """Return the shared environment for the templates shipped with read_later."""
    global _ENV
    if _ENV is None:
        _ENV = Environment(
            loader=PackageLoader("read_later", "templates"),
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        _ENV.filters["nl2br"] = _nl2br
        _ENV.filters["markdown"] = _render_markdown
    return _ENV
