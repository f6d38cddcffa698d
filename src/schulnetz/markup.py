"""Thin BeautifulSoup helpers with the DOM semantics the parsers rely on."""

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

HTML_PARSER = "html.parser"


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, HTML_PARSER)


def select(node: Tag, selector: str) -> list[Tag]:
    """All descendants of ``node`` matching a CSS selector, in document order."""
    return list(node.select(selector))


def inner_text(node: Tag) -> str:
    """Concatenate the direct text children of ``node``.

    ``<br>`` becomes a newline; every other child element is ignored, so the
    text of a cell does not pick up nested labels or detail blocks.
    """
    parts: list[str] = []
    for child in node.children:
        if isinstance(child, NavigableString):
            # Comments, CDATA and doctypes are NavigableStrings too
            if not isinstance(child, PreformattedString):
                parts.append(str(child))
        elif isinstance(child, Tag) and child.name == "br":
            parts.append("\n")
    return "".join(parts)


def attribute(node: Tag, name: str) -> str:
    """Attribute value, or '' when absent. Multi-valued attributes are space-joined."""
    value = node.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return value
