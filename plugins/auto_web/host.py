"""
The build tool side of page generation.

A :class:`BuildHost` records what the orchestrator registers at setup time
(entries, page output requests, shared-chunk passes, finalize hooks) and
runs the finalize phase over a :class:`Compilation`, the named outputs of one
build.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import urljoin

from plugins.auto_web.cache import DocumentCache
from plugins.auto_web.resource import SCRIPT, STYLE

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

HOT_UPDATE_RE = re.compile(r".+\.hot-update\.js$")

# Host commands that produce a deployable build.
PRODUCTION_COMMANDS = ("build", "gh-deploy")

CHUNK_EXTENSIONS = {
    SCRIPT: ".js",
    STYLE: ".css",
}


def is_production(command: Optional[str] = None) -> bool:
    """``NODE_ENV=production`` wins, otherwise decided by the host command."""
    if os.environ.get("NODE_ENV") == "production":
        return True
    return command in PRODUCTION_COMMANDS


class Compilation:
    """Named outputs of one build plus what is known about emitted chunks.

    ``chunk_files`` maps a chunk name to the files the bundler wrote for it,
    e.g. ``{"home": ["home.3f2a.js", "home.3f2a.css"]}``.
    """

    def __init__(self, public_path: str = "", chunk_files: Optional[Dict[str, List[str]]] = None):
        self.public_path = public_path
        self.chunk_files: Dict[str, List[str]] = dict(chunk_files or {})
        self.assets: Dict[str, Union[str, bytes]] = {}

    def add_asset(self, filename: str, content: Union[str, bytes]) -> None:
        self.assets[filename] = content

    @property
    def is_hot_update(self) -> bool:
        return any(HOT_UPDATE_RE.match(name) for name in self.assets)

    def chunk_url(self, kind: str, chunk_name: str, public_path: Optional[str] = None) -> Optional[str]:
        """URL of the first ``.js``/``.css`` file emitted for ``chunk_name``."""
        extension = CHUNK_EXTENSIONS[kind]
        base = self.public_path if public_path is None else public_path
        for filename in self.chunk_files.get(chunk_name, []):
            if filename.endswith(extension):
                return urljoin(base, filename)
        return None


@dataclass
class WebPage:
    """Request for one generated HTML document."""

    template: Optional[str]
    filename: str
    requires: List[str]
    cache: DocumentCache
    style_public_path: Optional[str] = None

    def emit(self, compilation: Compilation, production: bool = False, extract_style: bool = False) -> str:
        document = self.cache.load(self.template)
        document.ensure_requires(self.requires, extract_style=extract_style)
        document.resolve_urls(self._url_for(compilation))
        html = document.serialize(production=production)
        compilation.add_asset(self.filename, html)
        logger.debug("[auto_web] emitted %s requiring %s", self.filename, self.requires)
        return html

    def _url_for(self, compilation: Compilation) -> Callable[[str, str], Optional[str]]:
        def url_for(kind: str, chunk_name: str) -> Optional[str]:
            public_path = self.style_public_path if kind == STYLE else None
            return compilation.chunk_url(kind, chunk_name, public_path)

        return url_for


class BuildHost:
    """In-process host driving the ``register`` and ``finalize`` phases."""

    def __init__(
        self,
        is_production: bool = False,
        is_extract_style: bool = False,
        public_path: str = "",
        chunk_files: Optional[Dict[str, List[str]]] = None,
    ):
        self.is_production = is_production
        self.is_extract_style = is_extract_style
        self.public_path = public_path
        self.chunk_files = dict(chunk_files or {})
        # chunk name -> module paths compiled into it
        self.entry: Dict[str, List[str]] = {}
        self.pages: List[WebPage] = []
        self.shared_chunks: List[Dict] = []
        self._finalize_hooks: List[Callable[[Compilation], None]] = []

    def add_page(self, page: WebPage) -> None:
        self.pages.append(page)

    def add_shared_chunk(self, options: Dict) -> None:
        self.shared_chunks.append(dict(options))

    def on_finalize(self, hook: Callable[[Compilation], None]) -> None:
        self._finalize_hooks.append(hook)

    def finalize(self, compilation: Optional[Compilation] = None) -> Compilation:
        if compilation is None:
            compilation = Compilation(self.public_path, self.chunk_files)

        if compilation.is_hot_update:
            logger.debug("[auto_web] hot update, %d pages not regenerated", len(self.pages))
        else:
            for page in self.pages:
                page.emit(compilation, production=self.is_production, extract_style=self.is_extract_style)

        for hook in self._finalize_hooks:
            hook(compilation)
        return compilation
