"""Tests for policy summaries and their fallback."""

from unittest.mock import Mock

from district_twins.cache import KIND_POLICY_SUMMARY, FileResultCache, RemoteResultCache, content_hash
from district_twins.exceptions import LLMGenerationError
from district_twins.llm_client import MockLLMClient
from district_twins.policy import PolicySummarizer, structured_fallback_summary

BILL = (
    "The Student Aid Improvement Act shall appropriate $2,500,000 for education grants "
    "and increase Pell funding by 15% for eligible students in each state."
)

SECTIONS = ["## Executive Summary", "## District Analysis", "## Constituent Impact", "## Relevance Assessment"]


class TestStructuredFallbackSummary:
    """Tests for the deterministic Markdown summary."""

    def test_sections_present(self):
        summary = structured_fallback_summary(BILL, "CA-12", "Jane Doe")
        for section in SECTIONS:
            assert section in summary
        assert "**Representative:** Jane Doe (CA-12)" in summary

    def test_detects_title_figures_and_keywords(self):
        summary = structured_fallback_summary(BILL)
        assert "**Bill Title:** Education Policy" in summary
        assert "$2,500,000" in summary
        assert "15%" in summary
        assert "**Relevance Score:** 4/5" in summary

    def test_short_document(self):
        summary = structured_fallback_summary("Fund schools now", "CA-12")
        assert "very brief (3 words)" in summary
        assert "**Relevance Score:** 1/5" in summary
        for section in SECTIONS:
            assert section in summary

    def test_profile_mentions_demographics(self, live_profile):
        summary = structured_fallback_summary(BILL, "CA-12", "Jane Doe", live_profile)
        assert "$95,000" in summary
        assert "21% Hispanic" in summary

    def test_deterministic(self, live_profile):
        assert structured_fallback_summary(BILL, profile=live_profile) == structured_fallback_summary(
            BILL, profile=live_profile
        )

    def test_informal_text_scores_low(self):
        text = "We went to the beach and ate sandwiches while the sun was warm and bright all afternoon."
        assert "**Relevance Score:** 2/5" in structured_fallback_summary(text)


class TestPolicySummarizer:
    """Tests for PolicySummarizer."""

    def test_llm_summary_is_cached(self, tmp_path):
        cache = FileResultCache(tmp_path)
        client = MockLLMClient(response="## Executive Summary\nGood bill.")
        summarizer = PolicySummarizer(client, cache=cache)

        first = summarizer.summarize(BILL, "CA-12", "Jane Doe")
        second = summarizer.summarize(BILL, "CA-12", "Jane Doe")

        assert first == second == "## Executive Summary\nGood bill."
        assert len(client.calls) == 1
        stored = cache.get("CA-12", KIND_POLICY_SUMMARY, content_hash(BILL))
        assert stored["representative"] == "Jane Doe"

    def test_different_document_misses_cache(self, tmp_path):
        client = MockLLMClient(response="Summary")
        summarizer = PolicySummarizer(client, cache=FileResultCache(tmp_path))
        summarizer.summarize(BILL, "CA-12")
        summarizer.summarize(BILL + " Amended.", "CA-12")
        assert len(client.calls) == 2

    def test_llm_failure_uses_fallback_and_is_not_cached(self, tmp_path):
        cache = FileResultCache(tmp_path)
        client = Mock()
        client.generate.side_effect = LLMGenerationError("HTTP 503")
        summary = PolicySummarizer(client, cache=cache).summarize(BILL, "CA-12", "Jane Doe")

        assert summary == structured_fallback_summary(BILL, "CA-12", "Jane Doe")
        assert cache.get("CA-12", KIND_POLICY_SUMMARY, content_hash(BILL)) is None

    def test_remote_list_payload_is_a_miss(self, make_response):
        session = Mock()
        session.headers = {}
        session.get.return_value = make_response(200, {"data": ["not", "a", "summary"]})
        cache = RemoteResultCache("https://cache.example.org/api", session=session)
        client = MockLLMClient(response="Fresh summary")

        summary = PolicySummarizer(client, cache=cache).summarize(BILL, "CA-12")

        assert summary == "Fresh summary"
        assert len(client.calls) == 1
        session.post.assert_called_once()

    def test_empty_reply_uses_fallback(self):
        summary = PolicySummarizer(MockLLMClient()).summarize(BILL)
        assert "## Relevance Assessment" in summary

    def test_no_district_skips_cache(self):
        cache = Mock()
        PolicySummarizer(MockLLMClient(response="ok"), cache=cache).summarize(BILL)
        cache.get.assert_not_called()
        cache.put.assert_not_called()
