"""HTML to markdown conversion.

The page is parsed with BeautifulSoup, cleaned, reduced to a single content
root and copied into a small node tree of ``Text`` and ``Element`` values.
Rendering dispatches on the element tag through ``RENDERERS``; tags without
an entry are walked recursively and emit no markup of their own.

Inline constructs (links, emphasis, list items, ...) render the flattened
text of the element, so markup nested inside them is lost. Only the
recursive fallback preserves nested structure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Union

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from .models import ConversionResult, PageMetadata, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Article"

# Removed from the whole document before the content root is chosen.
REMOVED_SELECTORS = (
    "script",
    "style",
    "nav",
    "header",
    "footer",
    ".advertisement",
    ".sidebar",
)

# First match wins; <body> is the fallback.
CONTENT_SELECTORS = ("article", "main", ".content", ".post", ".entry")


@dataclass
class Text:
    value: str

    def text_content(self) -> str:
        return self.value


@dataclass
class Element:
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["Node"] = field(default_factory=list)

    def text_content(self) -> str:
        return "".join(child.text_content() for child in self.children)

    def get(self, name: str, default: str = "") -> str:
        return self.attributes.get(name) or default

    def iter_elements(self, tag: str) -> Iterator["Element"]:
        """Yield descendant elements with the given tag in document order."""
        for child in self.children:
            if isinstance(child, Element):
                if child.tag == tag:
                    yield child
                yield from child.iter_elements(tag)


Node = Union[Text, Element]


def build_tree(tag: Tag) -> Element:
    """Copy a BeautifulSoup tag into the Text/Element node model."""
    children: List[Node] = []
    for child in tag.children:
        if isinstance(child, Tag):
            children.append(build_tree(child))
        elif isinstance(child, NavigableString) and not isinstance(
            child, PreformattedString
        ):
            children.append(Text(str(child)))

    attributes = {
        key: " ".join(value) if isinstance(value, list) else value
        for key, value in tag.attrs.items()
    }
    return Element((tag.name or "").lower(), attributes, children)


def _heading(level: int) -> Callable[[Element], str]:
    marker = "#" * level

    def render(element: Element) -> str:
        return f"{marker} {element.text_content()}\n\n"

    return render


def _paragraph(element: Element) -> str:
    return f"{element.text_content()}\n\n"


def _strong(element: Element) -> str:
    return f"**{element.text_content()}**"


def _emphasis(element: Element) -> str:
    return f"*{element.text_content()}*"


def _link(element: Element) -> str:
    return f"[{element.text_content()}]({element.get('href')})"


def _image(element: Element) -> str:
    return f"![{element.get('alt')}]({element.get('src')})\n\n"


def _unordered_list(element: Element) -> str:
    lines = [f"- {item.text_content()}\n" for item in element.iter_elements("li")]
    return "".join(lines) + "\n"


def _ordered_list(element: Element) -> str:
    lines = [
        f"{index}. {item.text_content()}\n"
        for index, item in enumerate(element.iter_elements("li"), start=1)
    ]
    return "".join(lines) + "\n"


def _blockquote(element: Element) -> str:
    return f"> {element.text_content()}\n\n"


def _code(element: Element) -> str:
    return f"`{element.text_content()}`"


def _preformatted(element: Element) -> str:
    return f"```\n{element.text_content()}\n```\n\n"


RENDERERS: Dict[str, Callable[[Element], str]] = {
    "h1": _heading(1),
    "h2": _heading(2),
    "h3": _heading(3),
    "h4": _heading(4),
    "h5": _heading(5),
    "h6": _heading(6),
    "p": _paragraph,
    "strong": _strong,
    "b": _strong,
    "em": _emphasis,
    "i": _emphasis,
    "a": _link,
    "img": _image,
    "ul": _unordered_list,
    "ol": _ordered_list,
    "blockquote": _blockquote,
    "code": _code,
    "pre": _preformatted,
}


def html_to_markdown(element: Element) -> str:
    """Render the children of an element as markdown."""
    parts: List[str] = []
    for node in element.children:
        if isinstance(node, Text):
            parts.append(node.value)
            continue
        renderer = RENDERERS.get(node.tag)
        parts.append(renderer(node) if renderer else html_to_markdown(node))
    return "".join(parts)


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    meta = soup.select_one(f'meta[name="{name}"]')
    if meta is None:
        return ""
    return meta.get("content") or ""


def select_content_root(soup: BeautifulSoup) -> Tag:
    """Pick the main content element of a cleaned document."""
    for selector in CONTENT_SELECTORS:
        root = soup.select_one(selector)
        if root is not None:
            logger.debug("Content root matched selector %r", selector)
            return root
    return soup.body or soup


def strip_boilerplate(soup: BeautifulSoup) -> int:
    """Remove non-content elements in place and return how many were dropped."""
    removed = 0
    for selector in REMOVED_SELECTORS:
        for element in soup.select(selector):
            element.extract()
            removed += 1
    return removed


def convert_html(html: str, url: str) -> ConversionResult:
    """Convert an HTML document into markdown plus page metadata."""
    soup = BeautifulSoup(html, "lxml")

    title_tag = soup.find("title")
    title = (title_tag.get_text().strip() if title_tag else "") or DEFAULT_TITLE
    author = _meta_content(soup, "author")
    description = _meta_content(soup, "description")

    removed = strip_boilerplate(soup)
    logger.debug("Removed %d boilerplate elements from %s", removed, url)

    root = build_tree(select_content_root(soup))
    markdown = html_to_markdown(root)

    metadata = PageMetadata(
        title=title,
        author=author,
        description=description,
        url=url,
        extracted_at=utcnow(),
    )
    return ConversionResult(markdown=markdown, title=title, metadata=metadata)
