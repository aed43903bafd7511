"""Tests for query tokenization and entry keyword extraction."""

from __future__ import annotations

from unfold.keywords import (
    STOP_WORDS,
    extract_keywords,
    path_keywords,
    split_identifier,
    tokenize_query,
)


class TestTokenizeQuery:
    def test_question_drops_stop_words(self):
        assert tokenize_query("How does subscription payment work?") == ["subscription", "payment", "work"]

    def test_lowercases_and_strips_punctuation(self):
        assert tokenize_query("Stripe-Webhook, RETRY!") == ["stripe", "webhook", "retry"]

    def test_short_tokens_dropped(self):
        assert tokenize_query("db io api") == ["api"]

    def test_deduplicates_in_order(self):
        assert tokenize_query("member billing member") == ["member", "billing"]

    def test_only_stop_words_is_empty(self):
        assert tokenize_query("how does the what") == []

    def test_empty_and_whitespace(self):
        assert tokenize_query("") == []
        assert tokenize_query("   \t\n ") == []

    def test_stop_words_are_lowercase(self):
        assert all(w == w.lower() for w in STOP_WORDS)


class TestExtractKeywords:
    def test_compound_tokens_are_split(self):
        keywords = extract_keywords("admin_x_settings")
        assert "admin" in keywords
        assert "settings" in keywords
        assert "admin_x_settings" not in keywords

    def test_semantic_variations_added(self):
        keywords = extract_keywords("membership page")
        for word in ("member", "subscription", "portal", "view", "screen"):
            assert word in keywords

    def test_variations_not_duplicated(self):
        keywords = extract_keywords("settings admin config")
        assert len(keywords) == len(set(keywords))

    def test_no_stop_words(self):
        keywords = extract_keywords("The member has been charged for this plan")
        assert not set(keywords) & STOP_WORDS
        assert keywords[:3] == ["member", "charged", "plan"]


class TestSplitIdentifier:
    def test_camel_case(self):
        assert split_identifier("handleSubscriptionExpiration") == "handle Subscription Expiration"

    def test_acronym_boundary(self):
        assert split_identifier("HTTPServer") == "HTTP Server"

    def test_snake_case(self):
        assert split_identifier("send_welcome_email") == "send welcome email"

    def test_plain_word_unchanged(self):
        assert split_identifier("payment") == "payment"


class TestPathKeywords:
    def test_directories_and_stem(self):
        assert path_keywords("src/services/payment.js") == ["src", "services", "payment"]

    def test_extension_word_kept_when_long_enough(self):
        assert "json" in path_keywords("config/settings.json")
