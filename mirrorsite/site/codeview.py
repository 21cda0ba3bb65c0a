"""
Code Viewer & Landing Page - Generated pages of the served artifact set.

Output:

    <website>/
    ├── index.html              # landing page linking every served section
    └── codeview/
        ├── index.html          # ?path=src/core/Object3D.js → shows that file
        └── manifest.json       # every file under the served src/
"""

from __future__ import annotations

import html
import json
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..helpers import remove_path

SECTION_LABELS = {
    "build": "Build",
    "docs": "Documentation",
    "editor": "Editor",
    "examples": "Examples",
    "manual": "Manual",
    "playground": "Playground",
    "files": "Files",
    "src": "Source",
    "codeview": "Code Viewer",
}

CODEVIEW_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{title} - code viewer</title>
  <style>
    body {{ margin: 0; font-family: system-ui, sans-serif; background: #1e1e1e; color: #ddd; }}
    header {{ padding: 12px 20px; background: #111; display: flex; gap: 16px; align-items: center; }}
    header a {{ color: #8cf; text-decoration: none; }}
    #path {{ font-family: monospace; color: #fff; }}
    pre {{ margin: 0; padding: 16px 20px; font-size: 13px; line-height: 1.5; white-space: pre; overflow: auto; }}
    ul {{ font-family: monospace; padding: 16px 40px; }}
    li a {{ color: #ddd; }}
  </style>
</head>
<body>
  <header><a href="../index.html">&larr; home</a><span id="path"></span></header>
  <main id="content"></main>
  <script>
    (function () {{
      var params = new URLSearchParams(window.location.search);
      var path = params.get("path");
      var content = document.getElementById("content");

      function show(text) {{
        var pre = document.createElement("pre");
        pre.textContent = text;
        content.replaceChildren(pre);
      }}

      if (!path) {{
        fetch("manifest.json").then(function (r) {{ return r.json(); }}).then(function (m) {{
          var ul = document.createElement("ul");
          m.files.forEach(function (f) {{
            var li = document.createElement("li");
            var a = document.createElement("a");
            a.href = "?path=" + encodeURIComponent(f);
            a.textContent = f;
            li.appendChild(a);
            ul.appendChild(li);
          }});
          content.replaceChildren(ul);
        }});
        return;
      }}

      if (path.indexOf("..") !== -1) {{
        show("Invalid path");
        return;
      }}
      document.getElementById("path").textContent = path;
      fetch("../" + path.replace(/^\\/+/, "")).then(function (r) {{
        if (!r.ok) {{ throw new Error(r.status + " " + r.statusText); }}
        return r.text();
      }}).then(show).catch(function (e) {{ show("Could not load " + path + ": " + e.message); }});
    }})();
  </script>
</body>
</html>
"""


def build_manifest(website: Path, source_section: str = "src") -> Dict[str, Any]:
    """List every served source file, relative to the serving root."""
    source_dir = Path(website) / source_section
    files: List[str] = []
    if source_dir.is_dir():
        files = sorted(
            path.relative_to(website).as_posix()
            for path in source_dir.rglob("*")
            if path.is_file()
        )
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "count": len(files),
        "files": files,
    }


def generate_codeview(website: Path, title: str = "local mirror") -> Path:
    """Write codeview/index.html and codeview/manifest.json."""
    website = Path(website)
    codeview_dir = website / "codeview"
    remove_path(codeview_dir)
    codeview_dir.mkdir(parents=True)

    page = codeview_dir / "index.html"
    page.write_text(CODEVIEW_HTML.format(title=html.escape(title)), encoding="utf-8")

    manifest = codeview_dir / "manifest.json"
    with open(manifest, "w", encoding="utf-8") as f:
        json.dump(build_manifest(website), f, indent=2)

    return page


def generate_index(
    website: Path,
    sections: Sequence[str],
    title: str = "local mirror",
    template: Optional[Path] = None,
    build_kind: str = "full",
) -> Path:
    """
    Write the root index.html.

    If ``template`` names an existing file it is copied verbatim;
    otherwise a landing page linking each present section is generated.
    """
    website = Path(website)
    index_path = website / "index.html"

    if template is not None and Path(template).is_file():
        shutil.copyfile(template, index_path)
        return index_path

    present = [s for s in sections if (website / s).is_dir()]
    items = "\n".join(
        f'      <li><a href="{html.escape(s)}/">{html.escape(SECTION_LABELS.get(s, s))}</a></li>'
        for s in present
    )
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    notice = ""
    if build_kind != "full":
        notice = '    <p class="notice">Reduced build: some sections are unavailable.</p>\n'

    index_path.write_text(
        f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{html.escape(title)}</title>
  <style>
    body {{ font-family: system-ui, sans-serif; max-width: 720px; margin: 40px auto; padding: 0 20px; }}
    li {{ margin: 8px 0; font-size: 18px; }}
    .notice {{ color: #b36b00; }}
    footer {{ color: #888; font-size: 13px; margin-top: 40px; }}
  </style>
</head>
<body>
  <h1>{html.escape(title)}</h1>
{notice}  <ul>
{items}
  </ul>
  <footer>Built {generated} ({html.escape(build_kind)} build)</footer>
</body>
</html>
""",
        encoding="utf-8",
    )
    return index_path
