"""
HTML document model for generated pages.

A template is parsed once, its <head>/<body> anchors are located and their
direct children are classified into script/style resources and injection
markers. ``ensure_requires`` then injects whatever required chunk is not yet
referenced, and ``serialize`` renders the page either compact (production)
or with one newline in front of every element (development).
"""

import copy
import logging
from typing import Callable, Iterable, List, Optional, Tuple

import htmlmin
from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

from plugins.auto_web.errors import AutoWebError
from plugins.auto_web.resource import COMMENT, SCRIPT, STYLE, Resource, script_node, style_node

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

HTML_PARSER = "html.parser"

# Used when a page has no template of its own.
DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
</head>
<body>
<!--SCRIPT-->
</body>
</html>
"""

# htmlmin leaves whitespace inside these tags untouched.
PRESERVE_WHITESPACE_TAGS = ("pre", "textarea")

# Options for the final whitespace collapse of compact output. Comments left
# at that point are conditional comments and must survive, attribute quotes too.
HTMLMIN_OPTS = {
    "remove_comments": False,
    "remove_empty_space": True,
    "remove_optional_attribute_quotes": False,
    "reduce_boolean_attributes": False,
    "keep_pre": False,
    "pre_tags": PRESERVE_WHITESPACE_TAGS,
}


def is_text(node: PageElement) -> bool:
    """True for character data; comments, doctypes and the like are not text."""
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def is_conditional_comment(node: PageElement) -> bool:
    return isinstance(node, Comment) and str(node).startswith("[if ")


class HTMLDocument:
    """A parsed page template plus what has been found in it.

    Attributes:
        soup: the whole tree.
        head / body: the anchor tags, ``None`` when the template has none.
        script_resources / style_resources: classified direct children of
            the anchors, in document order, including injected ones.
        script_marker / style_marker: the ``<!--SCRIPT-->`` and
            ``<!--STYLE-->`` comments, until they are consumed.
    """

    def __init__(self, soup: BeautifulSoup, template_path: Optional[str] = None):
        self.soup = soup
        self.template_path = template_path
        self.head: Optional[Tag] = None
        self.body: Optional[Tag] = None
        self.script_resources: List[Resource] = []
        self.style_resources: List[Resource] = []
        self.script_marker: Optional[Comment] = None
        self.style_marker: Optional[Comment] = None

    # -------------------------------
    # Construction
    # -------------------------------

    @classmethod
    def parse(cls, html: str, template_path: Optional[str] = None) -> "HTMLDocument":
        document = cls(BeautifulSoup(html, HTML_PARSER), template_path)
        document._find_anchors()
        for anchor in (document.head, document.body):
            if anchor is not None:
                document._scan(anchor.contents)
        missing = [f"<{name}>" for name in ("head", "body") if getattr(document, name) is None]
        if missing:
            logger.warning("[auto_web] template %s has no %s", template_path or "<default>", " or ".join(missing))
        return document

    @classmethod
    def from_file(cls, template_path: Optional[str] = None) -> "HTMLDocument":
        """Read and parse ``template_path``; ``None`` means the built-in skeleton."""
        if template_path is None:
            return cls.parse(DEFAULT_TEMPLATE)
        with open(template_path, encoding="utf8") as f:
            html = f.read()
        logger.debug("[auto_web] parsed template %s", template_path)
        return cls.parse(html, template_path)

    def _find_anchors(self) -> None:
        """Look for <head> and <body> at the root and inside <html>."""
        for node in self.soup.contents:
            if not isinstance(node, Tag):
                continue
            if node.name == "html":
                for child in node.contents:
                    self._take_anchor(child)
            else:
                self._take_anchor(node)

    def _take_anchor(self, node: PageElement) -> None:
        if isinstance(node, Tag):
            if node.name == "head":
                self.head = node
            elif node.name == "body":
                self.body = node

    def _scan(self, nodes: Iterable[PageElement]) -> None:
        for node in list(nodes):
            self._add(Resource(node, self.template_path))

    def _add(self, resource: Resource) -> None:
        if resource.kind == SCRIPT:
            self.script_resources.append(resource)
        elif resource.kind == STYLE:
            self.style_resources.append(resource)
        elif resource.kind == COMMENT:
            if resource.is_script_marker:
                if self.script_marker is not None:
                    logger.warning("[auto_web] duplicate <!--SCRIPT--> marker in %s, the last one is used", resource.template_path)
                self.script_marker = resource.node
            elif resource.is_style_marker:
                if self.style_marker is not None:
                    logger.warning("[auto_web] duplicate <!--STYLE--> marker in %s, the last one is used", resource.template_path)
                self.style_marker = resource.node

    # -------------------------------
    # Reconciliation
    # -------------------------------

    @property
    def script_chunk_names(self) -> List[str]:
        return [r.chunk_name for r in self.script_resources if r.chunk_name is not None]

    @property
    def style_chunk_names(self) -> List[str]:
        return [r.chunk_name for r in self.style_resources if r.chunk_name is not None]

    def ensure_requires(self, requires: Iterable[str], extract_style: bool = False) -> List[Tag]:
        """Reference every chunk in ``requires`` exactly once.

        Scripts are always reconciled. Stylesheets only when styles are
        extracted into their own files, otherwise the bundler inlined them.
        Returns the injected nodes.
        """
        requires = list(requires)
        injected = self._ensure_required(requires, SCRIPT)
        if extract_style:
            injected += self._ensure_required(requires, STYLE)
        for name, node in injected:
            resource = Resource(node, self.template_path)
            # identity is the required name, not what parsing the src gives back
            resource.chunk_name = name
            self._add(resource)
        return [node for _, node in injected]

    def _ensure_required(self, requires: List[str], kind: str) -> List[Tuple[str, Tag]]:
        if kind == SCRIPT:
            present = set(self.script_chunk_names)
            marker, anchor = self.script_marker, self.body
            make_node = lambda name: script_node(self.soup, src=name)
        else:
            present = set(self.style_chunk_names)
            marker, anchor = self.style_marker, self.head
            make_node = lambda name: style_node(self.soup, href=name)

        left_over: List[str] = []
        for name in requires:
            if name not in present and name not in left_over:
                left_over.append(name)
        if not left_over:
            return []

        nodes = [make_node(name) for name in left_over]
        if marker is not None:
            marker.replace_with(*nodes)
            if kind == SCRIPT:
                self.script_marker = None
            else:
                self.style_marker = None
            logger.debug("[auto_web] injected %s %s at marker", kind, left_over)
        elif anchor is not None:
            for node in nodes:
                anchor.append(node)
            logger.debug("[auto_web] appended %s %s to <%s>", kind, left_over, anchor.name)
        else:
            raise AutoWebError(
                f"Template {self.template_path or '<default>'} has neither a "
                f"<!--{kind.upper()}--> marker nor a <{'body' if kind == SCRIPT else 'head'}> "
                f"tag, cannot inject required {kind} chunks {left_over}"
            )
        return list(zip(left_over, nodes))

    def resolve_urls(self, url_for: Callable[[str, str], Optional[str]]) -> None:
        """Point chunk references at their emitted files.

        ``url_for(kind, chunk_name)`` returns the final URL or ``None`` to leave
        the reference alone. Chunk identity is kept, so this is done last.
        """
        for resource in self.script_resources:
            if resource.chunk_name is not None:
                url = url_for(SCRIPT, resource.chunk_name)
                if url:
                    resource.node["src"] = url
        for resource in self.style_resources:
            if resource.chunk_name is not None:
                url = url_for(STYLE, resource.chunk_name)
                if url:
                    resource.node["href"] = url

    # -------------------------------
    # Serialization
    # -------------------------------

    def serialize(self, production: bool = False) -> str:
        format_children = self._minify if production else self._prettify
        for anchor in (self.head, self.body):
            if anchor is not None:
                format_children(anchor)
        # no eventual_encoding: keep <meta charset> as the template wrote it
        html = self.soup.decode(eventual_encoding=None, formatter="html5")
        if production:
            html = htmlmin.minify(html, **HTMLMIN_OPTS)
        return html

    @staticmethod
    def _minify(parent: Tag) -> None:
        """Drop blank text and non-conditional comments among ``parent``'s children.

        Text with content is left to htmlmin, which collapses runs of
        whitespace to one space instead of removing word separators.
        """
        for node in list(parent.contents):
            if isinstance(node, Comment):
                if not is_conditional_comment(node):
                    node.extract()
            elif is_text(node) and not node.strip():
                node.extract()

    @staticmethod
    def _prettify(parent: Tag) -> None:
        """Put a newline in front of every element, walking back from the end.

        Stops at the first element already preceded by a newline, the
        template's own spacing above it is left as written.
        """
        children = list(parent.contents)
        for i in range(len(children) - 1, -1, -1):
            node = children[i]
            if is_text(node):
                continue
            previous = children[i - 1] if i > 0 else None
            if previous is not None and is_text(previous) and "\n" in previous:
                return
            node.insert_before(NavigableString("\n"))

    # -------------------------------
    # Cloning
    # -------------------------------

    def clone(self) -> "HTMLDocument":
        """Structural copy: no tag, string or resource wrapper is shared."""
        soup = BeautifulSoup("", HTML_PARSER)
        for node in self.soup.contents:
            soup.append(copy.copy(node))

        other = type(self)(soup, self.template_path)
        other._find_anchors()
        other.script_resources = [r.clone(self._counterpart(r.node, other)) for r in self.script_resources]
        other.style_resources = [r.clone(self._counterpart(r.node, other)) for r in self.style_resources]
        if self.script_marker is not None:
            other.script_marker = self._counterpart(self.script_marker, other)
        if self.style_marker is not None:
            other.style_marker = self._counterpart(self.style_marker, other)
        return other

    def _counterpart(self, node: PageElement, other: "HTMLDocument") -> PageElement:
        """Find the node at the same position under ``other``'s anchors."""
        if node.parent is self.head:
            return other.head.contents[self.head.index(node)]
        if node.parent is self.body:
            return other.body.contents[self.body.index(node)]
        raise AutoWebError(f"Resource {node!r} is not a direct child of <head> or <body>")
