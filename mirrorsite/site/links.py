"""
Link Rewriting - Point produced documents at the local mirror.

Two pure text transforms, both idempotent (their output contains no
text they would match again):

- rewrite_site_links: absolute upstream-site links in href/src
  attributes become links relative to the serving root.
      https://threejs.org/         → ../            (from docs/index.html)
      https://threejs.org/manual/  → ../manual/
- rewrite_source_links: upstream source-browsing links become links
  into the local code viewer.
      https://github.com/mrdoob/three.js/blob/master/src/core/Object3D.js
        → ../../codeview/index.html?path=src/core/Object3D.js

rewrite_tree applies them to the serving root on disk.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlsplit

from ..errors import LinkRewriteFailure

logger = logging.getLogger(__name__)

CODEVIEW_PAGE = "codeview/index.html"

# Path segment of a source link; allows the docs' [name] placeholders
_SOURCE_PATH = r"((?:[^\s\"'<>()\[\]#?]|\[[^\s\]]*\])+)"


def relative_prefix(depth: int) -> str:
    """Prefix that climbs from a page ``depth`` directories deep to the root."""
    return "../" * depth if depth > 0 else "./"


def page_depth(page: Path, root: Path) -> int:
    """Number of directories between ``root`` and ``page``."""
    return len(page.relative_to(root).parts) - 1


def _site_pattern(site_url: str) -> re.Pattern:
    parts = urlsplit(site_url if "//" in site_url else f"https://{site_url}")
    host = re.escape(parts.netloc)
    base = re.escape(parts.path.rstrip("/"))
    return re.compile(
        r"(\b(?:href|src)\s*=\s*)([\"'])(?:https?:)?//" + host + base + r"(/[^\"']*)?\2",
        re.IGNORECASE,
    )


def _source_pattern(browse_url: str) -> re.Pattern:
    return re.compile(re.escape(browse_url.rstrip("/")) + r"/[^/\s\"'<>]+/" + _SOURCE_PATH)


def rewrite_site_links(text: str, depth: int, site_url: str) -> str:
    """Make absolute links to ``site_url`` relative to the serving root."""
    prefix = relative_prefix(depth)

    def _replace(match: re.Match) -> str:
        rest = (match.group(3) or "").lstrip("/")
        return f"{match.group(1)}{match.group(2)}{prefix}{rest}{match.group(2)}"

    return _site_pattern(site_url).sub(_replace, text)


def rewrite_source_links(text: str, depth: int, browse_url: str) -> str:
    """Redirect upstream source-browsing links to the local code viewer."""
    target = relative_prefix(depth) + CODEVIEW_PAGE

    def _replace(match: re.Match) -> str:
        return f"{target}?path={match.group(1)}"

    return _source_pattern(browse_url).sub(_replace, text)


def _read(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LinkRewriteFailure(f"Cannot read {path}: {e}") from e


def _write(path: Path, text: str) -> None:
    try:
        path.write_bytes(text.encode("utf-8"))
    except OSError as e:
        raise LinkRewriteFailure(f"Cannot write {path}: {e}") from e


def rewrite_tree(
    root: Path,
    site_url: str,
    browse_url: str,
    site_link_sections: Iterable[str] = ("docs", "examples", "manual"),
    source_link_sections: Iterable[str] = ("docs",),
    log: Optional[logging.Logger] = None,
) -> int:
    """
    Rewrite links in the serving root.

    - index.html files under ``site_link_sections`` get site links rewritten
    - *.html files under ``source_link_sections`` get source links rewritten

    Only files whose text changed are written back.

    Returns:
        Number of files changed

    Raises:
        LinkRewriteFailure: a page could not be read, decoded or written
    """
    log = log or logger
    root = Path(root)

    pages: dict = {}
    for section in site_link_sections:
        section_dir = root / section
        if section_dir.is_dir():
            for page in sorted(section_dir.rglob("index.html")):
                pages.setdefault(page, set()).add("site")
    for section in source_link_sections:
        section_dir = root / section
        if section_dir.is_dir():
            for page in sorted(section_dir.rglob("*.html")):
                pages.setdefault(page, set()).add("source")

    changed = 0
    for page, kinds in pages.items():
        if not page.is_file():
            continue
        original = _read(page)
        depth = page_depth(page, root)
        text = original
        if "site" in kinds:
            text = rewrite_site_links(text, depth, site_url)
        if "source" in kinds:
            text = rewrite_source_links(text, depth, browse_url)
        if text != original:
            _write(page, text)
            changed += 1

    log.info(f"Link rewrite: {changed} of {len(pages)} pages changed")
    return changed
