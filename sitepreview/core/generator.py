"""Status page shown when a project has no HTML entry yet."""

from __future__ import annotations

from typing import Iterable

from jinja2 import DictLoader, Environment, select_autoescape

from .paths import normalize_path


FALLBACK_TEMPLATE = """\
<!doctype html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{{ title }}</title>
  <style>
    :root { color-scheme: dark; font-family: Inter, system-ui, sans-serif; }
    body {
      margin: 0;
      min-height: 100vh;
      display: grid;
      place-items: center;
      background:
        radial-gradient(900px 600px at 15% 20%, rgba(14, 165, 233, 0.16), transparent 60%),
        radial-gradient(900px 700px at 85% 80%, rgba(99, 102, 241, 0.14), transparent 60%),
        #040712;
      color: #f8fafc;
    }
    .card {
      width: min(860px, calc(100vw - 32px));
      border-radius: 20px;
      border: 1px solid rgba(255,255,255,0.14);
      background: rgba(8, 14, 28, 0.72);
      box-shadow: 0 22px 60px rgba(2, 6, 23, 0.62);
      padding: 28px;
    }
    h1 { margin: 0 0 8px; font-size: clamp(1.3rem, 2vw + 1rem, 2.2rem); }
    p { margin: 0; color: rgba(226,232,240,0.75); line-height: 1.5; }
    .stats { display: flex; gap: 10px; margin: 18px 0 20px; flex-wrap: wrap; }
    .pill {
      padding: 7px 12px;
      border-radius: 999px;
      border: 1px solid rgba(255,255,255,0.13);
      background: rgba(255,255,255,0.05);
      font-size: 12px;
      letter-spacing: .06em;
      text-transform: uppercase;
    }
    ul { margin: 0; padding: 0; list-style: none; max-height: min(48vh, 360px); overflow: auto; display: grid; gap: 8px; }
    li {
      padding: 9px 11px;
      border-radius: 10px;
      border: 1px solid rgba(255,255,255,0.1);
      background: rgba(15, 23, 42, 0.58);
      font-size: 13px;
      font-family: ui-monospace, SFMono-Regular, Menlo, monospace;
      word-break: break-all;
    }
  </style>
</head>
<body>
  <section class="card">
    <h1>{{ title }} is Ready</h1>
    <p>No HTML entry file was found yet. Add <code>index.html</code> (or any HTML file) and the preview will render your app with folder-aware assets.</p>
    <div class="stats">
      <span class="pill">Files: {{ file_count }}</span>
      <span class="pill">Folders: {{ folder_count }}</span>
      <span class="pill">Mode: Fallback</span>
    </div>
    <ul>
    {%- for path in paths %}
      <li>{{ path }}</li>
    {%- else %}
      <li>No files yet</li>
    {%- endfor %}
    </ul>
  </section>
</body>
</html>
"""


def _env() -> Environment:
    return Environment(
        loader=DictLoader({"fallback.html.j2": FALLBACK_TEMPLATE}),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )


def render_fallback_page(
    paths: Iterable[str],
    file_count: int,
    folder_count: int,
    title: str = "Simple Preview",
) -> str:
    listed = sorted({normalize_path(path) for path in paths} - {""})
    tpl = _env().get_template("fallback.html.j2")
    return tpl.render(
        title=title,
        paths=listed,
        file_count=file_count,
        folder_count=folder_count,
    )
