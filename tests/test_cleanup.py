from __future__ import annotations

from lexstream.models.answer import Source
from lexstream.stream.cleanup import (
    derive_sources,
    has_citation_markers,
    inject_citations,
    is_too_short,
    sanitize_answer,
)


def test_sanitize_removes_sources_section_and_placeholders():
    text = (
        "Contracts need consideration (URL unavailable).\n\n\n"
        "See URL: statute text.\n\n"
        "**Sources:**\n1. Cornell LII\n2. Nolo"
    )

    cleaned = sanitize_answer(text)

    assert "Sources" not in cleaned
    assert "URL unavailable" not in cleaned
    assert "URL:" not in cleaned
    assert "\n\n\n" not in cleaned
    assert cleaned.startswith("Contracts need consideration")


def test_sanitize_keeps_raw_text_when_everything_would_be_removed():
    assert sanitize_answer("  Sources:\n- a\n") == "Sources:\n- a"


def test_sanitize_leaves_inline_mentions_of_sources():
    text = "Primary sources of law include statutes."
    assert sanitize_answer(text) == text


def test_derive_sources_from_urls_then_bare_domains():
    sources = derive_sources("See https://www.nolo.com/legal/contract, and also justia.com for more.")

    assert [s.url for s in sources] == ["https://www.nolo.com/legal/contract", "https://justia.com"]
    assert sources[0].title == "www.nolo.com"


def test_derive_sources_ignores_abbreviations():
    assert derive_sources("Under 28 U.S.C. and e.g. section 1.2 of the act.") == []


def test_inject_citations_into_paragraphs_without_markers():
    sources = [Source(title="A", url="https://a.example"), Source(title="B", url="https://b.example")]

    result = inject_citations("First point. More\n\nSecond point!", sources)

    assert result == "First point.[1] More\n\nSecond point![2]"
    assert has_citation_markers(result)


def test_inject_citations_appends_leftover_markers():
    sources = [Source(title=str(i), url=f"https://{i}.example") for i in range(3)]
    assert inject_citations("Only paragraph", sources) == "Only paragraph[1][2][3]"


def test_is_too_short():
    assert is_too_short("One sentence only.")
    long_text = " ".join(["word"] * 70) + ". Two. Three."
    assert not is_too_short(long_text)
