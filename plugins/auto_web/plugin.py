"""
An MkDocs plugin generating one HTML page per directory of a multi-page
front-end, with the page's bundled chunks injected into its template.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.plugins import BasePlugin

from plugins.auto_web.host import BuildHost, Compilation, is_production
from plugins.auto_web.pages import AutoWeb, Literal, Resolver, Selector

# Use MkDocs' recommended plugin logger namespace so debug logs appear only with `--verbose`.
logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Placeholder turning a string option into a per-page value.
PAGE_PLACEHOLDER = "{name}"


class AutoWebPlugin(BasePlugin):
    """MkDocs plugin wrapping :class:`AutoWeb`.

    Configuration options:
    - page_dir (str, required): directory holding one sub-directory per page,
      relative to mkdocs.yml.
    - template / entry / filename (str): may contain ``{name}``, replaced by
      the page name. Templates are relative to mkdocs.yml.
    - ignore_pages, pre_entrys, post_entrys (list)
    - commons_chunk (dict): shared-chunk extraction options, needs ``name``.
    - style_public_path (str), public_path (str, defaults to ``site_url``)
    - extract_style (bool): styles are emitted as standalone .css files.
    - output_pagemap (bool): write ``pagemap.json``.
    - manifest (str): JSON written by the bundler, chunk name -> emitted files.
    """

    config_scheme = (
        ('page_dir',          c.Type(str, required=True)),
        ('template',          c.Type(str, default="")),
        ('entry',             c.Type(str, default="")),
        ('filename',          c.Type(str, default="")),
        ('ignore_pages',      c.Type(list, default=[])),
        ('pre_entrys',        c.Type(list, default=[])),
        ('post_entrys',       c.Type(list, default=[])),
        ('commons_chunk',     c.Type(dict, default={})),
        ('style_public_path', c.Type(str, default="")),
        ('public_path',       c.Type(str, default="")),
        ('extract_style',     c.Type(bool, default=False)),
        ('output_pagemap',    c.Type(bool, default=False)),
        ('manifest',          c.Type(str, default="")),
    )

    def __init__(self):
        super().__init__()
        self._command: Optional[str] = None
        self.auto_web: Optional[AutoWeb] = None
        self.host: Optional[BuildHost] = None

    # -------------------------------
    # Helpers
    # -------------------------------

    @staticmethod
    def _config_dir(config: MkDocsConfig) -> str:
        config_file = config.get("config_file_path")
        return os.path.dirname(os.path.abspath(config_file)) if config_file else os.getcwd()

    @staticmethod
    def _selector(value: str, base_dir: Optional[str] = None) -> Optional[Selector]:
        """``{name}`` makes a per-page resolver; ``base_dir`` anchors relative paths."""
        if not value:
            return None

        def locate(path: str) -> str:
            return os.path.join(base_dir, path) if base_dir else path

        if PAGE_PLACEHOLDER in value:
            return Resolver(lambda name: locate(value.replace(PAGE_PLACEHOLDER, name)))
        return Literal(locate(value))

    def _public_path(self, config: MkDocsConfig) -> str:
        return self.config.get("public_path") or config.get("site_url") or ""

    def _load_manifest(self, config: MkDocsConfig) -> Dict[str, List[str]]:
        manifest = self.config.get("manifest")
        if not manifest:
            return {}
        path = Path(self._config_dir(config)) / manifest
        data = json.loads(path.read_text(encoding="utf8"))
        # a chunk may list a single file
        return {name: [files] if isinstance(files, str) else list(files) for name, files in data.items()}

    # -------------------------------
    # MkDocs hooks
    # -------------------------------

    def on_startup(self, *, command: str, dirty: bool) -> None:
        self._command = command

    def on_config(self, config: MkDocsConfig) -> MkDocsConfig:
        """Construct and register: scan page_dir and fill the host."""
        base_dir = self._config_dir(config)
        self.auto_web = AutoWeb(
            os.path.join(base_dir, self.config["page_dir"]),
            template=self._selector(self.config.get("template"), base_dir),
            entry=self._selector(self.config.get("entry")),
            filename=self._selector(self.config.get("filename")),
            ignore_pages=self.config.get("ignore_pages"),
            pre_entrys=self.config.get("pre_entrys"),
            post_entrys=self.config.get("post_entrys"),
            commons_chunk=self.config.get("commons_chunk") or None,
            style_public_path=self.config.get("style_public_path") or None,
            output_pagemap=self.config.get("output_pagemap", False),
        )
        self.host = BuildHost(
            is_production=is_production(self._command),
            is_extract_style=self.config.get("extract_style", False),
            public_path=self._public_path(config),
        )
        self.auto_web.apply(self.host)
        logger.debug("[auto_web] entries=%s shared_chunks=%s", self.host.entry, self.host.shared_chunks)
        return config

    def on_post_build(self, *, config: MkDocsConfig) -> None:
        """Finalize: render every page and write all outputs into site_dir."""
        if self.host is None:
            return
        compilation = Compilation(self.host.public_path, self._load_manifest(config))
        self.host.finalize(compilation)

        site_dir = Path(config["site_dir"])
        for name, content in compilation.assets.items():
            target = site_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf8")
        logger.info("[auto_web] wrote %d files to %s", len(compilation.assets), site_dir)
