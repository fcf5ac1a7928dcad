"""
Resource model: wraps one direct child of <head> or <body> and tells the
document what it is (external/inline script, stylesheet, comment or
anything else) and which chunk it loads.
"""

import copy
import posixpath
from typing import Optional

from bs4 import BeautifulSoup, Comment, Tag
from bs4.element import PageElement

SCRIPT = "script"
STYLE = "style"
COMMENT = "comment"
OTHER = "other"

# Reserved comment payloads marking where missing resources are injected.
SCRIPT_MARKER = "SCRIPT"
STYLE_MARKER = "STYLE"

# Extensions of emitted chunk files. Anything else after a dot is part of the
# chunk name, e.g. ``app.v2``.
ASSET_EXTENSIONS = (".js", ".mjs", ".cjs", ".jsx", ".css")


def chunk_name_from_url(url: Optional[str]) -> Optional[str]:
    """Strip the asset extension from a src/href: ``js/vendor.js`` -> ``js/vendor``."""
    if not url:
        return None
    root, extension = posixpath.splitext(url)
    return root if extension.lower() in ASSET_EXTENSIONS else url


def is_stylesheet_link(node: Tag) -> bool:
    rel = node.get("rel") or []
    # html.parser splits rel into a list, tags built by hand keep a string
    if isinstance(rel, str):
        rel = rel.split()
    return "stylesheet" in (r.lower() for r in rel)


class Resource:
    """One classified node. The wrapper never owns the tree, ``node`` is a
    reference into it."""

    def __init__(self, node: PageElement, template_path: Optional[str] = None):
        self.node = node
        self.template_path = template_path
        self.kind = OTHER
        self.chunk_name: Optional[str] = None
        self.data: Optional[str] = None

        if isinstance(node, Comment):
            self.kind = COMMENT
            self.data = str(node).strip()
        elif isinstance(node, Tag):
            if node.name == "script":
                self.kind = SCRIPT
                self.chunk_name = chunk_name_from_url(node.get("src"))
            elif node.name == "link" and is_stylesheet_link(node):
                self.kind = STYLE
                self.chunk_name = chunk_name_from_url(node.get("href"))
            elif node.name == "style":
                self.kind = STYLE

    @property
    def is_script_marker(self) -> bool:
        return self.kind == COMMENT and self.data == SCRIPT_MARKER

    @property
    def is_style_marker(self) -> bool:
        return self.kind == COMMENT and self.data == STYLE_MARKER

    def clone(self, node: Optional[PageElement] = None) -> "Resource":
        """Copy this wrapper onto ``node`` (the counterpart of ``self.node`` in a
        cloned tree). Without a counterpart the wrapped node is copied too."""
        other = copy.copy(self)
        other.node = node if node is not None else copy.copy(self.node)
        return other

    def __repr__(self) -> str:
        return f"Resource(kind={self.kind!r}, chunk_name={self.chunk_name!r}, data={self.data!r})"


def script_node(soup: BeautifulSoup, src: Optional[str] = None, content: Optional[str] = None) -> Tag:
    """Build ``<script src=...>`` or an inline ``<script>`` holding ``content``."""
    if src is not None:
        return soup.new_tag("script", attrs={"src": src})
    if content is not None:
        tag = soup.new_tag("script")
        tag.string = content
        return tag
    raise ValueError("script_node needs either src or content")


def style_node(soup: BeautifulSoup, href: Optional[str] = None, content: Optional[str] = None) -> Tag:
    """Build ``<link rel="stylesheet" href=...>`` or an inline ``<style>`` block."""
    if href is not None:
        return soup.new_tag("link", attrs={"rel": "stylesheet", "href": href})
    if content is not None:
        tag = soup.new_tag("style")
        tag.string = content
        return tag
    raise ValueError("style_node needs either href or content")
