"""Tests for tool output formatters."""

from autodidact.acquire.fetcher import FetchReport
from autodidact.models.entry import KnowledgeEntry
from autodidact.tools.formatters import (
    format_entry,
    format_entry_header,
    format_fetch_report,
    format_result_list,
)


def _entry(content: str = "Python is a language.") -> KnowledgeEntry:
    return KnowledgeEntry(
        id=3, topic="Python", source="https://wiki.test/Python", content=content, confidence=0.9
    )


def test_entry_header():
    assert format_entry_header(_entry()) == (
        "[3] Python | https://wiki.test/Python (conf 0.90, 0 reads)"
    )


def test_entry_excerpt_truncated():
    text = format_entry(_entry("word " * 200), excerpt_chars=20)
    assert text.endswith("...")
    assert len(text.splitlines()[1]) < 30


def test_result_list_empty():
    assert format_result_list([]) == "No results found."


def test_result_list_counts():
    out = format_result_list(["a", "b"])
    assert out.startswith("2 result(s):")


def test_fetch_report():
    report = FetchReport("Rust", saved=["https://a.test"], failed=[("https://b.test", "timed out")])
    assert format_fetch_report(report) == (
        "Rust: 1 of 2 sources saved\n  + https://a.test\n  - https://b.test: timed out"
    )
