"""
Tests for link rewriting - site links and source links.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mirrorsite.errors import LinkRewriteFailure
from mirrorsite.site.links import (
    page_depth,
    relative_prefix,
    rewrite_site_links,
    rewrite_source_links,
    rewrite_tree,
)

SITE = "https://threejs.org"
BROWSE = "https://github.com/mrdoob/three.js/blob"


class TestRelativePrefix:

    def test_root(self):
        assert relative_prefix(0) == "./"

    def test_nested(self):
        assert relative_prefix(1) == "../"
        assert relative_prefix(3) == "../../../"

    def test_page_depth(self, tmp_path: Path):
        assert page_depth(tmp_path / "index.html", tmp_path) == 0
        assert page_depth(tmp_path / "docs" / "api" / "index.html", tmp_path) == 2


class TestSiteLinks:

    def test_absolute_links_become_relative(self):
        text = '<a href="https://threejs.org/examples/">x</a><img src="http://threejs.org/files/logo.png">'

        out = rewrite_site_links(text, 1, SITE)

        assert out == '<a href="../examples/">x</a><img src="../files/logo.png">'

    def test_bare_root_link(self):
        assert rewrite_site_links('<a href="https://threejs.org">', 1, SITE) == '<a href="../">'

    def test_protocol_relative_and_single_quotes(self):
        out = rewrite_site_links("<a href='//threejs.org/manual/'>", 2, SITE)
        assert out == "<a href='../../manual/'>"

    def test_other_hosts_untouched(self):
        text = '<a href="https://threejs.org.evil.com/x">'
        assert rewrite_site_links(text, 1, SITE) == text

    def test_text_outside_attributes_untouched(self):
        text = "<p>Visit https://threejs.org/ for more</p>"
        assert rewrite_site_links(text, 1, SITE) == text

    def test_idempotent(self):
        text = '<a href="https://threejs.org/docs/#api/en/core/Object3D">'
        once = rewrite_site_links(text, 1, SITE)
        assert rewrite_site_links(once, 1, SITE) == once


class TestSourceLinks:

    def test_points_at_code_viewer(self):
        text = '<a href="https://github.com/mrdoob/three.js/blob/master/src/core/Object3D.js">'

        out = rewrite_source_links(text, 2, BROWSE)

        assert out == '<a href="../../codeview/index.html?path=src/core/Object3D.js">'

    def test_placeholder_paths_survive(self):
        text = "[link:https://github.com/mrdoob/three.js/blob/master/src/[path].js src/[path].js]"

        out = rewrite_source_links(text, 1, BROWSE)

        assert "../codeview/index.html?path=src/[path].js" in out
        assert "github.com" not in out.split(" ")[0]

    def test_idempotent(self):
        text = '<a href="https://github.com/mrdoob/three.js/blob/dev/examples/jsm/Addons.js">'
        once = rewrite_source_links(text, 1, BROWSE)
        assert rewrite_source_links(once, 1, BROWSE) == once


class TestRewriteTree:

    @pytest.fixture
    def site(self, tmp_path: Path) -> Path:
        (tmp_path / "docs" / "api").mkdir(parents=True)
        (tmp_path / "examples").mkdir()
        (tmp_path / "build").mkdir()
        (tmp_path / "docs" / "index.html").write_text('<a href="https://threejs.org/manual/">m</a>')
        (tmp_path / "docs" / "api" / "Object3D.html").write_text(
            '<a href="https://github.com/mrdoob/three.js/blob/master/src/core/Object3D.js">s</a>'
        )
        (tmp_path / "examples" / "index.html").write_text("<p>nothing to rewrite</p>")
        (tmp_path / "build" / "index.html").write_text('<a href="https://threejs.org/">')
        return tmp_path

    def test_rewrites_only_configured_sections(self, site: Path):
        changed = rewrite_tree(site, SITE, BROWSE)

        assert changed == 2
        assert (site / "docs" / "index.html").read_text() == '<a href="../manual/">m</a>'
        assert "../../codeview/index.html?path=src/core/Object3D.js" in (
            site / "docs" / "api" / "Object3D.html"
        ).read_text()
        assert (site / "build" / "index.html").read_text() == '<a href="https://threejs.org/">'

    def test_second_pass_changes_nothing(self, site: Path):
        rewrite_tree(site, SITE, BROWSE)
        assert rewrite_tree(site, SITE, BROWSE) == 0

    def test_missing_sections_are_skipped(self, tmp_path: Path):
        assert rewrite_tree(tmp_path, SITE, BROWSE) == 0

    def test_undecodable_page_raises(self, site: Path):
        (site / "docs" / "index.html").write_bytes(b"\xff\xfe\x00bad")

        with pytest.raises(LinkRewriteFailure):
            rewrite_tree(site, SITE, BROWSE)
