from __future__ import annotations

import pytest

from lexstream.citations.filters import SourceFilter
from lexstream.models.answer import Source
from lexstream.stream.splitter import ResponseSplitter


class TestSourceFilter:
    def test_title_containing_denylisted_word_is_dropped(self):
        keep = Source(title="Cornell LII", url="https://www.law.cornell.edu/wex/contract")
        drop = Source(title="Internal memo", url="https://ok.example/memo")

        assert SourceFilter().apply([keep, drop]) == [keep]

    def test_url_match_is_case_insensitive(self):
        source = Source(title="Search", url="https://www.Google.com/search?q=ucc")
        assert SourceFilter().keep(source) is False

    def test_redirect_urls_are_kept(self):
        source = Source(
            title="Court rules",
            url="https://vertexaisearch.cloud.google.com/grounding-api-redirect/AbC",
        )
        assert SourceFilter().keep(source) is True

    def test_custom_patterns(self):
        flt = SourceFilter(["blog"])
        assert flt.keep(Source(title="Law blog", url="https://a.example")) is False
        assert flt.keep(Source(title="Internal", url="https://a.example")) is True


class TestResponseSplitter:
    def test_splits_main_text_and_filters_short_lines(self):
        text = (
            "Answer[1].\n---FOLLOW_UP_QUESTIONS---\n"
            "What is consideration?\n\nShort\nHow do courts enforce contracts?"
        )

        main, questions = ResponseSplitter().split(text)

        assert main == "Answer[1]."
        assert questions == ["What is consideration?", "How do courts enforce contracts?"]

    def test_without_delimiter_returns_text_unchanged(self):
        text = "  Plain answer with no follow-ups.  "
        assert ResponseSplitter().split(text) == (text, [])

    def test_at_most_five_questions(self):
        tail = "\n".join(f"Follow-up question number {i}?" for i in range(8))
        _, questions = ResponseSplitter().split(f"Body\n---FOLLOW_UP_QUESTIONS---\n{tail}")

        assert len(questions) == 5
        assert questions[0] == "Follow-up question number 0?"

    def test_line_of_exactly_min_length_is_dropped(self):
        _, questions = ResponseSplitter().split("Body---FOLLOW_UP_QUESTIONS---\n0123456789\n01234567890")
        assert questions == ["01234567890"]

    def test_repeated_delimiter_lines_skipped(self):
        main, questions = ResponseSplitter().split(
            "Body\n---FOLLOW_UP_QUESTIONS---\n---FOLLOW_UP_QUESTIONS---\nIs a verbal agreement binding?"
        )
        assert main == "Body"
        assert questions == ["Is a verbal agreement binding?"]

    def test_empty_delimiter_rejected(self):
        with pytest.raises(ValueError):
            ResponseSplitter("")
