"""Single-article exports as markdown, HTML or JSON."""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from .models import Article
from .templating import get_environment

FORMATS = {
    "markdown": ("md", "text/markdown"),
    "html": ("html", "text/html"),
    "json": ("json", "application/json"),
}


@dataclass
class ExportedArticle:
    """Rendered export ready to be written to disk."""

    content: str
    filename: str
    mime_type: str


def export_filename(title: str, extension: str) -> str:
    """Lowercase the title and replace anything outside [a-z0-9] with '_'."""
    stem = re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE).lower()
    return f"{stem}.{extension}"


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def article_to_dict(article: Article) -> Dict[str, Any]:
    return json.loads(json.dumps(asdict(article), default=_json_default))


def build_article_markdown(article: Article) -> str:
    env = get_environment()
    return env.get_template("article.md.j2").render(article=article)


def build_article_html(article: Article) -> str:
    env = get_environment()
    return env.get_template("article.html.j2").render(article=article)


def build_article_json(article: Article) -> str:
    return json.dumps(article_to_dict(article), indent=2, ensure_ascii=False)


_BUILDERS = {
    "markdown": build_article_markdown,
    "html": build_article_html,
    "json": build_article_json,
}


def export_article(article: Article, fmt: str) -> ExportedArticle:
    """Render an article in one of the supported export formats."""
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    extension, mime_type = FORMATS[fmt]
    return ExportedArticle(
        content=_BUILDERS[fmt](article),
        filename=export_filename(article.title, extension),
        mime_type=mime_type,
    )


def write_export(exported: ExportedArticle, destination: Path) -> Path:
    """Write an export to a file, or into a directory under its own name."""
    target = destination / exported.filename if destination.is_dir() else destination
    if target.parent and not target.parent.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(exported.content, encoding="utf-8")
    return target
