"""Static HTML preview of a project file tree.

``render_preview`` locates the project's HTML entry file and returns it as a
single self-contained document: local stylesheets and scripts are inlined and
local text images (SVG) are embedded as ``data:`` URIs, so the page renders
without an asset server. Nothing is executed server-side. Projects without an
HTML entry get a placeholder page.
"""

from __future__ import annotations

import base64
import mimetypes
import posixpath
import re
from collections.abc import Sequence

from bs4 import BeautifulSoup, Tag
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter
from jinja2 import Environment, select_autoescape

from peaks.filetree import FileNode, count_files, find_node, walk


ENTRY_CANDIDATES = ("index.html", "public/index.html", "src/index.html")

# Extensions a browser can run or apply directly when inlined.
_INLINE_SCRIPT_EXTENSIONS = {".js", ".mjs", ".cjs"}
_INLINE_STYLE_EXTENSIONS = {".css"}

# Non text/* types that are still plain text on disk.
_TEXT_MIME_TYPES = {"application/javascript", "application/json", "application/xml"}

# Minimal escaping, void elements written without a trailing slash.
_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
    empty_attributes_are_booleans=True,
)

_EXTERNAL_RE = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|//|#)")


_PLACEHOLDER_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>No Preview Available</title>
  <style>
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
           display: flex; align-items: center; justify-content: center;
           height: 100vh; margin: 0; background: #fff; color: #6b7280; }
    .card { text-align: center; }
    h1 { color: #1f2937; font-size: 1.125rem; }
  </style>
</head>
<body>
  <div class="card">
    <h1>No Preview Available</h1>
    {% if file_count %}
    <p>This {{ project_type }} has {{ file_count }} file{{ "s" if file_count != 1 }} but no HTML entry point.</p>
    {% else %}
    <p>Start building your app to see it here</p>
    {% endif %}
  </div>
</body>
</html>
"""

_env = Environment(autoescape=select_autoescape(default_for_string=True), trim_blocks=True, lstrip_blocks=True)
_placeholder = _env.from_string(_PLACEHOLDER_TEMPLATE)


# ---------------------------------------------------------------------------
# Entry lookup
# ---------------------------------------------------------------------------

def find_entry(files: Sequence[FileNode]) -> str | None:
    """Return the path of the HTML entry file, or ``None``.

    Conventional locations are tried first (``index.html``,
    ``public/index.html``, ``src/index.html``); otherwise the shallowest
    ``*.html`` file wins, ties broken by declaration order.
    """
    for candidate in ENTRY_CANDIDATES:
        node = find_node(files, candidate)
        if node is not None and node.is_file:
            return candidate

    best: tuple[int, str] | None = None
    for path, node, depth in walk(files):
        if node.is_file and node.name.lower().endswith((".html", ".htm")):
            if best is None or depth < best[0]:
                best = (depth, path)
    return best[1] if best else None


# ---------------------------------------------------------------------------
# Reference resolution
# ---------------------------------------------------------------------------

def is_external(ref: str) -> bool:
    """True for absolute URLs, ``data:`` URIs and fragment-only references."""
    return bool(_EXTERNAL_RE.match(ref.strip()))


def resolve_reference(ref: str, entry_path: str) -> str:
    """Resolve an HTML reference to a project path.

    A leading ``/`` resolves from the project root; anything else resolves
    relative to the entry file's folder. Query strings and fragments are
    dropped.
    """
    clean = re.split(r"[?#]", ref.strip(), maxsplit=1)[0]
    if clean.startswith("/"):
        return posixpath.normpath(clean.lstrip("/"))
    base = posixpath.dirname(entry_path)
    return posixpath.normpath(posixpath.join(base, clean)) if base else posixpath.normpath(clean)


def _lookup(files: Sequence[FileNode], ref: str | None, entry_path: str) -> tuple[str, FileNode] | None:
    if not ref or is_external(ref):
        return None
    path = resolve_reference(ref, entry_path)
    node = find_node(files, path)
    if node is None or not node.is_file:
        return None
    return path, node


def _extension(path: str) -> str:
    return posixpath.splitext(path)[1].lower()


def guess_mime(path: str) -> str:
    return mimetypes.guess_type(path)[0] or "application/octet-stream"


def is_text_asset(path: str) -> bool:
    """True when a file's bytes can be carried faithfully as stored text.

    Project files hold text only, so raster images, fonts and other binary
    formats are never embedded.
    """
    mime = guess_mime(path)
    return mime.startswith("text/") or mime in _TEXT_MIME_TYPES or mime.endswith(("+xml", "+json"))


def data_uri(path: str, content: str) -> str:
    """Embed text *content* as a base64 ``data:`` URI with a guessed mime type.

    Only meaningful for text assets (see :func:`is_text_asset`).
    """
    encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
    return f"data:{guess_mime(path)};base64,{encoded}"


# ---------------------------------------------------------------------------
# Inlining
# ---------------------------------------------------------------------------

def _rel(tag: Tag) -> list[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]


def _text_body(content: str | None, closing: str) -> str:
    body = (content or "").replace(f"</{closing}", f"<\\/{closing}")
    return f"\n{body}\n"


def inline_assets(html: str, files: Sequence[FileNode], entry_path: str) -> str:
    """Rewrite local asset references in *html* into inline/embedded form.

    References that are external, unresolved or binary are left untouched,
    as is anything inside comments. A document with nothing to rewrite is
    returned byte for byte.
    """
    soup = BeautifulSoup(html, "html.parser")
    changed = False

    for script in soup.find_all("script", src=True):
        found = _lookup(files, script.get("src"), entry_path)
        if found is None or _extension(found[0]) not in _INLINE_SCRIPT_EXTENSIONS:
            continue
        path, node = found
        del script["src"]
        script["data-source"] = path
        script.string = _text_body(node.content, "script")
        changed = True

    for link in soup.find_all("link", href=True):
        found = _lookup(files, link.get("href"), entry_path)
        if found is None:
            continue
        path, node = found
        if "stylesheet" in _rel(link):
            if _extension(path) not in _INLINE_STYLE_EXTENSIONS:
                continue
            style_attrs = {"data-source": path}
            if link.get("media"):
                style_attrs["media"] = link["media"]
            style = soup.new_tag("style", attrs=style_attrs)
            style.string = _text_body(node.content, "style")
            link.replace_with(style)
        elif is_text_asset(path):
            link["href"] = data_uri(path, node.content or "")
        else:
            continue
        changed = True

    for img in soup.find_all("img", src=True):
        found = _lookup(files, img.get("src"), entry_path)
        if found is None or not is_text_asset(found[0]):
            continue
        path, node = found
        img["src"] = data_uri(path, node.content or "")
        changed = True

    return soup.decode(formatter=_FORMATTER) if changed else html


def render_placeholder(project_type: str = "project", file_count: int = 0) -> str:
    """Minimal page stating that no preview is available."""
    return _placeholder.render(project_type=project_type or "project", file_count=file_count)


def render_preview(files: Sequence[FileNode], project_type: str = "") -> str:
    """Synthesize a single viewable HTML document from *files*."""
    entry = find_entry(files)
    if entry is None:
        return render_placeholder(project_type, count_files(files))
    node = find_node(files, entry)
    assert node is not None  # find_entry only returns existing files
    return inline_assets(node.content or "", files, entry)
