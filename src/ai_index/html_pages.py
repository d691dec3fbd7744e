from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ai_index.config import ListEntry, RunContext, ShardSummary

_BASE_STYLE = (
    "body{font:14px system-ui;margin:24px;max-width:1100px}"
    "table{width:100%;border-collapse:collapse}"
    "th,td{border-bottom:1px solid #eee;padding:8px;text-align:left}"
    ".mono,code{font-family:ui-monospace,Consolas,monospace}"
)

_COMBINED_STYLE = (
    "pre{white-space:pre-wrap;word-break:break-word}"
    "ul{line-height:1.6}"
    ".muted{color:#666}"
    ".grid{display:grid;grid-template-columns:repeat(auto-fit,minmax(260px,1fr));gap:12px;margin:14px 0}"
    ".card{border:1px solid #eee;border-radius:10px;padding:12px}"
    ".card h3{margin:0 0 6px 0}"
)


def _page(context: RunContext, title: str, body: str, *, extra_style: str = "") -> str:
    return (
        "<!doctype html><meta charset=\"utf-8\">"
        f"<title>{escape(context.namespace)} • {escape(title)}</title>\n"
        f"<style>{_BASE_STYLE}{extra_style}</style>\n"
        f"{body}"
        f"<p><small>Commit <code>{escape(context.commit[:7])}</code> • {escape(context.updated_utc)}</small></p>\n"
    )


def _link(href: str, label: str, *, new_tab: bool = True) -> str:
    target = ' target="_blank" rel="noopener"' if new_tab else ""
    return f'<a href="{escape(href, quote=True)}"{target}>{escape(label)}</a>'


def render_list_page(context: RunContext, title: str, entries: Sequence[ListEntry]) -> str:
    """Table of listed files with raw and browse links."""
    rows = "\n".join(
        f'<tr><td class="mono">{escape(e.path)}</td><td>{e.size}</td>'
        f"<td>{_link(e.raw_url, 'raw')}</td><td>{_link(e.html_url, 'view')}</td></tr>"
        for e in entries
    ) or '<tr><td colspan="4">No matching files.</td></tr>'
    body = (
        f"<h1>{escape(title)} ({len(entries)})</h1>\n"
        "<table><thead><tr><th>Path</th><th>Size</th><th>Raw</th><th>HTML</th></tr></thead><tbody>\n"
        f"{rows}\n"
        "</tbody></table>\n"
    )
    return _page(context, title, body)


def render_shard_index(context: RunContext, title: str, shards: Sequence[ShardSummary]) -> str:
    rows = "\n".join(
        f"<tr><td><code>{escape(s.name)}</code></td><td>{s.count}</td><td>{s.approx_bytes}</td>"
        f"<td>{_link(s.name + '.txt', 'txt')} · {_link(s.name + '.min.json', 'json')}</td></tr>"
        for s in shards
    ) or '<tr><td colspan="4">No shards emitted.</td></tr>'
    body = (
        f"<h1>{escape(title)}</h1>\n"
        "<table><thead><tr><th>Shard</th><th>Items</th><th>~Bytes</th><th>Links</th></tr></thead><tbody>\n"
        f"{rows}\n"
        "</tbody></table>\n"
    )
    return _page(context, title, body)


def render_combined_page(
    context: RunContext,
    title: str,
    *,
    list_names: Sequence[str],
    pack_names: Sequence[str],
    everything_name: str,
    pretty_document: str,
) -> str:
    """Quick links to every constituent artifact plus the combined document inline."""
    list_links = "".join(
        f"<li>{_link(n + '.html', n, new_tab=False)} · {_link(n + '.min.json', 'json', new_tab=False)}</li>"
        for n in list_names
    ) or '<li class="muted">No lists.</li>'
    pack_links = "".join(
        f"<li>{_link(n + '.txt', n, new_tab=False)} · {_link(n + '.min.json', 'json', new_tab=False)}</li>"
        for n in pack_names
    ) or '<li class="muted">No packs.</li>'
    everything_links = (
        f"<li>{_link(everything_name + '.html', 'Everything index (HTML)', new_tab=False)}</li>"
        f"<li>{_link(everything_name + '.manifest.min.json', 'Everything manifest (JSON)', new_tab=False)}</li>"
    )
    body = (
        f"<h1>{escape(title)}</h1>\n"
        '<div class="grid">\n'
        f'<div class="card"><h3>Lists</h3><ul>{list_links}</ul></div>\n'
        f'<div class="card"><h3>Packs</h3><ul>{pack_links}</ul></div>\n'
        f'<div class="card"><h3>Everything (for deep dives)</h3><ul>{everything_links}</ul></div>\n'
        "</div>\n"
        '<p class="muted">Machine-readable combined pack (below):</p>\n'
        f'<pre id="data">{escape(pretty_document, quote=False)}</pre>\n'
    )
    return _page(context, title, body, extra_style=_COMBINED_STYLE)
