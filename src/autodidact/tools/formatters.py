"""Compact output formatters for MCP tool responses."""

from autodidact.acquire.fetcher import FetchReport
from autodidact.models.entry import KnowledgeEntry
from autodidact.models.revision import CodeRevision

_EXCERPT_CHARS = 500


def format_entry_header(entry: KnowledgeEntry) -> str:
    """Format: [12] Python | https://en.wikipedia.org/wiki/Python (conf 1.00, 3 reads)."""
    return (
        f"[{entry.id}] {entry.topic} | {entry.source} "
        f"(conf {entry.confidence:.2f}, {entry.access_count} reads)"
    )


def format_entry(entry: KnowledgeEntry, excerpt_chars: int = _EXCERPT_CHARS) -> str:
    """Header plus a content excerpt."""
    content = entry.content
    if len(content) > excerpt_chars:
        content = content[:excerpt_chars].rstrip() + "..."
    return f"{format_entry_header(entry)}\n  {content}"


def format_result_list(items: list[str], header: str | None = None) -> str:
    """Join formatted items with a count line."""
    if not items:
        return "No results found."
    lines = [header or f"{len(items)} result(s):"]
    lines.append("")
    lines.append("\n\n".join(items))
    return "\n".join(lines)


def format_fetch_report(report: FetchReport) -> str:
    """Saved and failed sources for one topic."""
    total = len(report.saved) + len(report.failed)
    lines = [f"{report.topic}: {len(report.saved)} of {total} sources saved"]
    lines.extend(f"  + {url}" for url in report.saved)
    lines.extend(f"  - {url}: {reason}" for url, reason in report.failed)
    return "\n".join(lines)


def format_revision(revision: CodeRevision) -> str:
    """Format: v3 2026-01-02T03:04:05+00:00 | Self-improvement update: kubernetes."""
    stamp = revision.timestamp.isoformat() if revision.timestamp else "?"
    return f"v{revision.version} {stamp} | {revision.changes or '(no description)'}"
