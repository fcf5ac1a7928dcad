"""
Tests for page discovery, registration with the build host and page map
emission.
"""

import json
import os

import pytest

from plugins.auto_web.errors import AutoWebError
from plugins.auto_web.host import BuildHost, Compilation, is_production
from plugins.auto_web.pages import (
    PAGEMAP_FILENAME,
    AutoWeb,
    Literal,
    Resolver,
    as_selector,
    discover_pages,
)


@pytest.fixture
def page_dir(tmp_path):
    pages = tmp_path / "pages"
    for name in ("home", "about", "shared"):
        (pages / name).mkdir(parents=True)
    (pages / "README.md").write_text("not a page", encoding="utf8")
    return pages


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "template.html"
    path.write_text(
        "<!DOCTYPE html>\n<html>\n<head>\n<title>Pages</title>\n<!--STYLE-->\n</head>\n"
        "<body>\n<div id=\"app\"></div>\n<!--SCRIPT-->\n</body>\n</html>\n",
        encoding="utf8",
    )
    return path


class TestDiscovery:
    def test_only_directories(self, page_dir):
        """Test: plain files and ignored names are not pages."""
        assert discover_pages(str(page_dir), ["shared"]) == ["about", "home"]
        assert discover_pages(str(page_dir)) == ["about", "home", "shared"]

    def test_symlinks_skipped(self, page_dir, tmp_path):
        target = tmp_path / "elsewhere"
        target.mkdir()
        try:
            os.symlink(target, page_dir / "linked", target_is_directory=True)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")
        assert "linked" not in discover_pages(str(page_dir))

    def test_missing_page_dir(self, tmp_path):
        with pytest.raises(AutoWebError):
            AutoWeb(str(tmp_path / "nope"))


class TestSelectors:
    def test_as_selector(self):
        assert as_selector(None) is None
        assert as_selector("") is None
        assert as_selector("a.html") == Literal("a.html")
        assert isinstance(as_selector(str.upper), Resolver)
        assert as_selector(str.upper).resolve("home") == "HOME"
        literal = Literal("x")
        assert as_selector(literal) is literal

    def test_defaults(self, page_dir):
        """Test: the page directory is the entry and the page name the filename."""
        auto_web = AutoWeb(str(page_dir), ignore_pages=["shared"])
        home = auto_web.entry_map["home"]

        assert home.template is None
        assert home.entry_path == os.path.join(str(page_dir), "home", "")
        assert home.entry_path.endswith(os.sep)
        assert home.filename == "home"

    def test_literal_and_resolvers(self, page_dir):
        auto_web = AutoWeb(
            str(page_dir),
            template=lambda name: f"templates/{name}.html",
            entry="src/main.js",
            filename=lambda name: f"{name}-page",
        )
        about = auto_web.entry_map["about"]
        assert about.template == "templates/about.html"
        assert about.entry_path == "src/main.js"
        assert about.filename == "about-page"

    def test_fixed_filename_rejected(self, page_dir):
        with pytest.raises(AutoWebError):
            AutoWeb(str(page_dir), filename="index")

    def test_commons_chunk_needs_name(self, page_dir):
        with pytest.raises(AutoWebError):
            AutoWeb(str(page_dir), commons_chunk={"minChunks": 2})


class TestRegistration:
    def test_entries_with_pre_and_post(self, page_dir):
        auto_web = AutoWeb(str(page_dir), ignore_pages=["shared"], pre_entrys=["polyfill"], post_entrys=["report"])
        host = BuildHost()
        auto_web.apply(host)

        assert host.entry == {
            "about": ["polyfill", os.path.join(str(page_dir), "about", ""), "report"],
            "home": ["polyfill", os.path.join(str(page_dir), "home", ""), "report"],
        }
        assert [page.filename for page in host.pages] == ["about.html", "home.html"]
        assert [page.requires for page in host.pages] == [["about"], ["home"]]
        assert host.shared_chunks == []

    def test_commons_chunk(self, page_dir):
        """Test: the shared chunk pass covers exactly the discovered pages."""
        auto_web = AutoWeb(str(page_dir), ignore_pages=["shared"], commons_chunk={"name": "common", "minChunks": 2})
        host = BuildHost()
        auto_web.apply(host)

        assert host.shared_chunks == [{"chunks": ["about", "home"], "name": "common", "minChunks": 2}]
        assert [page.requires for page in host.pages] == [["common", "about"], ["common", "home"]]

    def test_pages_share_cache(self, page_dir, template):
        auto_web = AutoWeb(str(page_dir), template=str(template))
        host = BuildHost()
        auto_web.apply(host)
        host.finalize()

        assert all(page.cache is auto_web.cache for page in host.pages)
        assert len(auto_web.cache) == 1


class TestFinalize:
    def test_pages_rendered(self, page_dir, template):
        auto_web = AutoWeb(
            str(page_dir), template=str(template), ignore_pages=["shared"], commons_chunk={"name": "common"}
        )
        host = BuildHost()
        auto_web.apply(host)
        compilation = host.finalize()

        assert sorted(compilation.assets) == ["about.html", "home.html"]
        home = compilation.assets["home.html"]
        assert "<title>Pages</title>" in home
        assert home.index('<script src="common"></script>') < home.index('<script src="home"></script>')
        assert 'src="about"' not in home
        assert "<!--SCRIPT-->" not in home
        assert "<!--STYLE-->" in home

    def test_pagemap(self, page_dir):
        """Test: pagemap.json maps page names to public URLs of their output files."""
        auto_web = AutoWeb(
            str(page_dir), ignore_pages=["shared"], filename=lambda name: f"{name}-page", output_pagemap=True
        )
        host = BuildHost(public_path="/static/")
        auto_web.apply(host)
        compilation = host.finalize()

        assert json.loads(compilation.assets[PAGEMAP_FILENAME]) == {
            "about": "/static/about-page.html",
            "home": "/static/home-page.html",
        }
        assert "home-page.html" in compilation.assets

    def test_no_pagemap_by_default(self, page_dir):
        auto_web = AutoWeb(str(page_dir))
        host = BuildHost()
        auto_web.apply(host)
        assert PAGEMAP_FILENAME not in host.finalize().assets

    def test_hot_update_skips_pages(self, page_dir):
        auto_web = AutoWeb(str(page_dir), output_pagemap=True)
        host = BuildHost()
        auto_web.apply(host)

        compilation = Compilation()
        compilation.add_asset("main.3f2a.hot-update.js", "")
        host.finalize(compilation)
        assert "home.html" not in compilation.assets
        assert PAGEMAP_FILENAME in compilation.assets

    def test_chunk_urls(self, page_dir, template):
        """Test: emitted chunk files replace chunk names, styles use their own public path."""
        auto_web = AutoWeb(
            str(page_dir),
            template=str(template),
            ignore_pages=["shared", "about"],
            style_public_path="https://cdn.example.com/css/",
        )
        host = BuildHost(
            is_extract_style=True,
            public_path="/static/",
            chunk_files={"home": ["home.1a2b.js", "home.1a2b.css"]},
        )
        auto_web.apply(host)
        home = host.finalize().assets["home.html"]

        assert '<script src="/static/home.1a2b.js"></script>' in home
        assert 'href="https://cdn.example.com/css/home.1a2b.css"' in home

    def test_production_output(self, page_dir, template):
        auto_web = AutoWeb(str(page_dir), template=str(template), ignore_pages=["shared", "about"])
        host = BuildHost(is_production=True)
        auto_web.apply(host)
        home = host.finalize().assets["home.html"]

        assert "\n\n" not in home
        assert "<!--STYLE-->" not in home
        assert home.count('<script src="home"></script>') == 1


class TestIsProduction:
    def test_node_env(self, monkeypatch):
        monkeypatch.setenv("NODE_ENV", "production")
        assert is_production("serve") is True

    def test_command(self, monkeypatch):
        monkeypatch.delenv("NODE_ENV", raising=False)
        assert is_production("build") is True
        assert is_production("gh-deploy") is True
        assert is_production("serve") is False
        assert is_production(None) is False
