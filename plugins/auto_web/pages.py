"""
Multi-page discovery: every directory under ``page_dir`` becomes one entry
chunk and one generated ``<filename>.html`` page.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from urllib.parse import urljoin

from plugins.auto_web.cache import DocumentCache
from plugins.auto_web.errors import AutoWebError
from plugins.auto_web.host import BuildHost, Compilation, WebPage

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

PAGEMAP_FILENAME = "pagemap.json"


@dataclass(frozen=True)
class Literal:
    """Same value for every page."""

    value: Any

    def resolve(self, page_name: str) -> Any:
        return self.value


@dataclass(frozen=True)
class Resolver:
    """Value computed from the page name."""

    func: Callable[[str], Any]

    def resolve(self, page_name: str) -> Any:
        return self.func(page_name)


Selector = Union[Literal, Resolver]


def as_selector(value: Any) -> Optional[Selector]:
    """Accept a plain value, a callable or an explicit selector; ``None``/"" mean unset."""
    if value is None or isinstance(value, (Literal, Resolver)):
        return value
    if callable(value):
        return Resolver(value)
    if isinstance(value, str) and not value:
        return None
    return Literal(value)


@dataclass(frozen=True)
class PageEntry:
    name: str
    template: Optional[str]
    entry_path: str
    filename: str


def discover_pages(page_dir: str, ignore_pages: Iterable[str] = ()) -> List[str]:
    """Sorted names of the directories directly under ``page_dir``. Symlinks are skipped."""
    if not os.path.isdir(page_dir):
        raise AutoWebError(f"Page directory '{page_dir}' does not exist")
    ignored = set(ignore_pages)
    with os.scandir(page_dir) as entries:
        return sorted(
            entry.name
            for entry in entries
            if entry.name not in ignored and entry.is_dir(follow_symlinks=False)
        )


class AutoWeb:
    """Orchestrates the ``construct``, ``register`` and ``finalize`` phases.

    Construction scans ``page_dir``. :meth:`apply` registers entries, page
    requests and the optional shared-chunk pass with a :class:`BuildHost`,
    and hooks :meth:`emit_pagemap` into its finalize phase.

    Options:
    - template: HTML template path for every page, or a callable(page_name).
      Unset means the built-in skeleton.
    - entry: entry module for every page, or a callable(page_name). Unset
      means the page directory itself.
    - filename: callable(page_name) giving the output name without ``.html``.
      Unset means the page name.
    - ignore_pages: directory names that are not pages.
    - pre_entrys / post_entrys: modules put before / after every page entry.
    - commons_chunk: shared-chunk extraction options, ``name`` is required.
    - style_public_path: public path of stylesheet files, defaults to the
      host's public path.
    - output_pagemap: also emit ``pagemap.json`` (page name -> URL).
    """

    def __init__(
        self,
        page_dir: str,
        template: Any = None,
        entry: Any = None,
        filename: Any = None,
        ignore_pages: Optional[Iterable[str]] = None,
        pre_entrys: Optional[List[str]] = None,
        post_entrys: Optional[List[str]] = None,
        commons_chunk: Optional[Dict[str, Any]] = None,
        style_public_path: Optional[str] = None,
        output_pagemap: bool = False,
        cache: Optional[DocumentCache] = None,
    ):
        self.page_dir = os.path.abspath(page_dir)
        self.template = as_selector(template)
        self.entry = as_selector(entry)
        self.filename = as_selector(filename)
        if isinstance(self.filename, Literal):
            raise AutoWebError("'filename' must be a callable of the page name, a fixed name would be shared by every page")
        if commons_chunk and not commons_chunk.get("name"):
            raise AutoWebError("'commons_chunk' needs a 'name'")

        self.pre_entrys = list(pre_entrys or [])
        self.post_entrys = list(post_entrys or [])
        self.commons_chunk = dict(commons_chunk) if commons_chunk else None
        self.style_public_path = style_public_path
        self.output_pagemap = output_pagemap
        self.cache = cache if cache is not None else DocumentCache()

        self.entry_map: Dict[str, PageEntry] = {}
        for name in discover_pages(self.page_dir, ignore_pages or ()):
            self.entry_map[name] = self._page_entry(name)
        logger.info("[auto_web] found %d pages in %s", len(self.entry_map), self.page_dir)

    def _page_entry(self, name: str) -> PageEntry:
        template = self.template.resolve(name) if self.template else None
        entry_path = self.entry.resolve(name) if self.entry else None
        if not entry_path:
            # the page directory is the entry module
            entry_path = os.path.join(self.page_dir, name, "")
        filename = self.filename.resolve(name) if self.filename else name
        return PageEntry(name=name, template=template, entry_path=entry_path, filename=filename)

    @property
    def page_names(self) -> List[str]:
        return list(self.entry_map)

    def entry_modules(self, page: PageEntry) -> List[str]:
        return [*self.pre_entrys, page.entry_path, *self.post_entrys]

    def requires(self, page: PageEntry) -> List[str]:
        if self.commons_chunk:
            return [self.commons_chunk["name"], page.name]
        return [page.name]

    def apply(self, host: BuildHost) -> None:
        for name, page in self.entry_map.items():
            host.entry[name] = self.entry_modules(page)
            host.add_page(
                WebPage(
                    template=page.template,
                    filename=f"{page.filename}.html",
                    requires=self.requires(page),
                    cache=self.cache,
                    style_public_path=self.style_public_path,
                )
            )

        if self.commons_chunk:
            options: Dict[str, Any] = {"chunks": self.page_names}
            options.update(self.commons_chunk)
            host.add_shared_chunk(options)

        host.on_finalize(self.emit_pagemap)

    def pagemap(self, public_path: str) -> Dict[str, str]:
        return {
            name: urljoin(public_path, f"{page.filename}.html")
            for name, page in self.entry_map.items()
        }

    def emit_pagemap(self, compilation: Compilation) -> None:
        if not self.output_pagemap:
            return
        compilation.add_asset(PAGEMAP_FILENAME, json.dumps(self.pagemap(compilation.public_path)))
