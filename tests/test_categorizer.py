"""
Categorizer Module Tests

Tests for rule scoring, merchant lookup, learned user patterns, the external
classifier and batch categorization.
"""

import json
from datetime import date
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from statement_processor import (
    CategorizationMethod,
    CategoryResult,
    ClassifierUnavailable,
    ClassifierVerdict,
    ClaudeClassifier,
    JsonPatternStore,
    MerchantLookup,
    TransactionCategorizer,
    UserPatternStore,
    categorization_stats,
)
from statement_processor.models import Transaction


def txn(description: str, amount: str = "500", day: date = date(2025, 8, 4)) -> Transaction:
    return Transaction(date=day, description=description, amount=Decimal(amount))


@pytest.fixture
def mock_classifier():
    """External classifier stub answering 'shopping'."""
    classifier = Mock(spec=ClaudeClassifier)
    classifier.classify.return_value = ClassifierVerdict(
        category="shopping", confidence=0.9, reasoning="Retail store"
    )
    return classifier


@pytest.fixture
def categorizer(config_dir):
    return TransactionCategorizer(config_dir)


class TestCategoryResult:
    """Tests for CategoryResult."""

    def test_confidence_clamped(self):
        assert CategoryResult("food", 1.7, CategorizationMethod.RULE).confidence == 1.0
        assert CategoryResult("food", -0.2, CategorizationMethod.RULE).confidence == 0.0

    def test_to_dict(self):
        result = CategoryResult("food", 0.75, CategorizationMethod.MERCHANT_DB, "ZOMATO")

        assert result.to_dict() == {
            "category": "food",
            "confidence": 0.75,
            "method": "merchant-db",
            "details": "ZOMATO",
        }


class TestRuleBasedCategorization:
    """Tests for keyword/pattern rules."""

    def test_keyword_and_pattern_hit(self, categorizer):
        result = categorizer.categorize(txn("Zomato Order"))

        assert result.category == "food"
        assert result.method == CategorizationMethod.RULE
        assert result.confidence == pytest.approx(0.75)

    def test_many_hits_clamped_to_one(self, categorizer):
        result = categorizer.categorize(txn("SHELL PETROL PUMP"))

        assert result.category == "fuel"
        assert result.confidence == 1.0

    def test_keywords_match_whole_words(self, categorizer):
        result = categorizer.categorize(txn("BARBEQUE NATION"))

        assert result.category == "others"
        assert result.method == CategorizationMethod.FALLBACK

    def test_weak_rule_falls_through(self, categorizer):
        # atm has priority 3, so one keyword and one pattern stay below 0.7
        result = categorizer.categorize(txn("ATM WITHDRAWAL"))

        assert result.method == CategorizationMethod.FALLBACK


class TestMerchantDatabase:
    """Tests for the merchant table strategy and MerchantLookup."""

    def test_first_token_exact_match(self, categorizer):
        result = categorizer.categorize(txn("BESCOM BILL PAYMENT"))

        assert result.category == "utilities"
        assert result.method == CategorizationMethod.MERCHANT_DB
        assert result.confidence == pytest.approx(0.95)

    def test_pattern_match(self, config_dir):
        lookup = MerchantLookup(config_dir)

        match = lookup.lookup("RAPIDO BIKE")

        assert match.category == "travel"
        assert match.match_type == "pattern"

    def test_threshold_from_config(self, config_dir):
        assert MerchantLookup(config_dir).get_confidence_threshold() == 0.7

    def test_missing_config(self, tmp_path):
        lookup = MerchantLookup(tmp_path)

        assert lookup.lookup("ZOMATO") is None

    def test_add_export_import(self, tmp_path):
        lookup = MerchantLookup(tmp_path)
        lookup.add_mapping("qwerty store", "grocery", 0.9)
        lookup.add_mapping(r"^CORNER\s*SHOP", "grocery", 0.8, is_pattern=True)

        exported = lookup.export_mappings()
        restored = MerchantLookup(tmp_path, load=False)
        restored.import_mappings(json.loads(json.dumps(exported)))

        assert restored.lookup("QWERTY STORE").category == "grocery"
        assert restored.lookup("CORNER SHOP 12").match_type == "pattern"

    def test_blank_merchant(self, config_dir):
        lookup = MerchantLookup(config_dir)

        assert lookup.lookup("") is None
        assert lookup.lookup("   ") is None


class TestFallbackChain:
    """Tests for strategy ordering and fallbacks."""

    def test_unknown_merchant_falls_back(self, categorizer):
        result = categorizer.categorize(txn("QWERTY STORE"))

        assert result.category == "others"
        assert result.confidence == 0.5
        assert result.method == CategorizationMethod.FALLBACK

    def test_external_classifier_used_last(self, config_dir, mock_classifier):
        categorizer = TransactionCategorizer(config_dir, classifier=mock_classifier)

        known = categorizer.categorize(txn("Zomato Order"))
        unknown = categorizer.categorize(txn("QWERTY STORE"))

        assert known.method == CategorizationMethod.RULE
        assert unknown.category == "shopping"
        assert unknown.method == CategorizationMethod.EXTERNAL_CLASSIFIER
        mock_classifier.classify.assert_called_once_with("QWERTY STORE", Decimal("500"))

    def test_classifier_outage_falls_back(self, config_dir, mock_classifier):
        mock_classifier.classify.side_effect = ClassifierUnavailable("timeout")
        categorizer = TransactionCategorizer(config_dir, classifier=mock_classifier)

        result = categorizer.categorize(txn("QWERTY STORE"))

        assert result.method == CategorizationMethod.FALLBACK

    def test_low_confidence_classifier_ignored(self, config_dir, mock_classifier):
        mock_classifier.classify.return_value = ClassifierVerdict("shopping", 0.6)
        categorizer = TransactionCategorizer(config_dir, classifier=mock_classifier)

        assert categorizer.categorize(txn("QWERTY STORE")).category == "others"

    def test_failing_strategy_never_raises(self):
        broken = Mock()
        broken.attempt.side_effect = RuntimeError("boom")
        categorizer = TransactionCategorizer(strategies=[broken])

        result = categorizer.categorize(txn("ANYTHING"))

        assert result.method == CategorizationMethod.FALLBACK

    def test_custom_strategy_appended(self, config_dir):
        custom = Mock()
        custom.attempt.return_value = CategoryResult("medical", 0.9, CategorizationMethod.RULE)
        categorizer = TransactionCategorizer(config_dir)
        categorizer.strategies.append(custom)

        assert categorizer.categorize(txn("QWERTY STORE")).category == "medical"

    def test_threshold_follows_merchant_config(self, tmp_path):
        mappings = {
            "low_confidence_threshold": 0.95,
            "exact_matches": {"ACME": {"category": "shopping", "confidence": 0.9}},
        }
        (tmp_path / "merchant_mappings.json").write_text(json.dumps(mappings))

        strict = TransactionCategorizer(tmp_path)
        lenient = TransactionCategorizer(tmp_path, confidence_threshold=0.85)

        assert strict.confidence_threshold == 0.95
        assert strict.categorize(txn("ACME STORE")).category == "others"
        assert lenient.categorize(txn("ACME STORE")).category == "shopping"

    def test_default_threshold(self, categorizer):
        assert categorizer.confidence_threshold == 0.7

    def test_categorize_does_not_learn(self, config_dir, mock_classifier):
        store = UserPatternStore()
        categorizer = TransactionCategorizer(
            config_dir, pattern_store=store, classifier=mock_classifier
        )

        categorizer.categorize(txn("QWERTY STORE"), user_id="u1")

        assert store.get_patterns("u1") == []


class TestLearning:
    """Tests for explicit learning and feedback."""

    def test_learn_then_reuse(self, config_dir, mock_classifier):
        categorizer = TransactionCategorizer(config_dir, classifier=mock_classifier)
        first = [txn("QWERTY STORE")]

        results = categorizer.categorize_batch(first, "u1", pacing_seconds=0)
        learned = categorizer.learn(first, results, "u1")
        mock_classifier.classify.reset_mock()

        again = categorizer.categorize(txn("qwerty store 2231"), user_id="u1")

        assert learned == 1
        assert again.method == CategorizationMethod.USER_PATTERN
        assert again.category == "shopping"
        mock_classifier.classify.assert_not_called()

    def test_patterns_scoped_to_user(self, config_dir, mock_classifier):
        categorizer = TransactionCategorizer(config_dir, classifier=mock_classifier)
        first = [txn("QWERTY STORE")]
        categorizer.learn(first, categorizer.categorize_batch(first, "u1", pacing_seconds=0), "u1")

        other = categorizer.categorize(txn("QWERTY STORE"), user_id="u2")

        assert other.method == CategorizationMethod.EXTERNAL_CLASSIFIER

    def test_low_confidence_not_learned(self, categorizer):
        first = [txn("QWERTY STORE")]
        results = categorizer.categorize_batch(first, "u1", pacing_seconds=0)

        assert categorizer.learn(first, results, "u1") == 0

    def test_feedback(self, categorizer):
        feedback = categorizer.record_feedback("u1", txn("QWERTY STORE"), "grocery")

        result = categorizer.categorize(txn("QWERTY STORE"), user_id="u1")

        assert feedback.confidence == 1.0
        assert result.category == "grocery"
        assert result.confidence == 1.0
        assert result.method == CategorizationMethod.USER_PATTERN

    def test_clear_user_patterns(self, categorizer):
        categorizer.record_feedback("u1", txn("QWERTY STORE"), "grocery")
        categorizer.clear_user_patterns("u1")

        assert categorizer.categorize(txn("QWERTY STORE"), user_id="u1").category == "others"


class TestUserPatternStore:
    """Tests for learned pattern storage."""

    def test_repeat_sighting_raises_confidence(self):
        store = UserPatternStore()
        store.record("u1", "QWERTY", "shopping", 0.85)
        second = store.record("u1", "QWERTY", "shopping", 0.85)

        assert second.count == 2
        assert second.confidence == pytest.approx(0.95)

        third = store.record("u1", "QWERTY", "shopping", 0.85)
        assert third.confidence == 1.0

    def test_prunes_to_fifty(self):
        store = UserPatternStore()
        for _ in range(5):
            store.record("u1", "FAVOURITE", "food", 0.9)
        for i in range(60):
            store.record("u1", f"SHOP{i}", "shopping", 0.9)

        patterns = store.get_patterns("u1")

        assert len(patterns) == 50
        assert patterns[0].pattern == "FAVOURITE"

    def test_same_pattern_different_category(self):
        store = UserPatternStore()
        store.record("u1", "QWERTY", "shopping", 0.9)
        store.record("u1", "QWERTY", "grocery", 0.9)

        assert len(store.get_patterns("u1")) == 2

    def test_json_store_persists(self, tmp_path):
        path = tmp_path / "patterns.json"
        store = JsonPatternStore(path)
        store.record("u1", r"QWERTY\s*STORE", "grocery", 0.9, "QWERTY STORE")

        reloaded = JsonPatternStore(path)

        match = reloaded.match("u1", "qwerty  store")
        assert match.category == "grocery"
        assert match.sample_description == "QWERTY STORE"


class TestBatchCategorization:
    """Tests for categorize_batch."""

    def test_order_preserved_across_chunks(self, categorizer):
        txns = [
            txn("Zomato Order"),
            txn("QWERTY STORE"),
            txn("SHELL PETROL PUMP"),
            txn("BESCOM BILL PAYMENT"),
            txn("NETFLIX SUBSCRIPTION"),
        ]

        results = categorizer.categorize_batch(txns, batch_size=2, pacing_seconds=0)

        assert [r.category for r in results] == [
            "food", "others", "fuel", "utilities", "entertainment",
        ]

    def test_pacing_between_chunks(self, categorizer):
        txns = [txn(f"QWERTY {i}") for i in range(5)]

        with patch("statement_processor.categorizer.time.sleep") as sleep:
            categorizer.categorize_batch(txns, batch_size=2, pacing_seconds=0.1)

        assert sleep.call_count == 2
        sleep.assert_called_with(0.1)

    def test_failed_chunk_degrades(self, categorizer):
        txns = [txn("Zomato Order"), txn("QWERTY STORE")]

        with patch.object(categorizer, "categorize", side_effect=RuntimeError("boom")):
            results = categorizer.categorize_batch(txns, pacing_seconds=0)

        assert len(results) == 2
        assert all(r.category == "others" for r in results)
        assert all(r.confidence == 0.3 for r in results)
        assert all(r.method == CategorizationMethod.FALLBACK for r in results)

    def test_empty_batch(self, categorizer):
        assert categorizer.categorize_batch([]) == []

    def test_stats(self):
        results = [
            CategoryResult("food", 0.9, CategorizationMethod.RULE),
            CategoryResult("food", 0.8, CategorizationMethod.MERCHANT_DB),
            CategoryResult("others", 0.5, CategorizationMethod.FALLBACK),
            CategoryResult("others", 0.3, CategorizationMethod.FALLBACK),
        ]

        stats = categorization_stats(results)

        assert stats["total"] == 4
        assert stats["categories"] == {"food": 2, "others": 2}
        assert stats["methods"]["fallback"] == 2
        assert stats["average_confidence"] == pytest.approx(0.625)
        assert stats["low_confidence"] == 2
        assert stats["categorization_rate"] == 0.5


class TestClaudeClassifier:
    """Tests for the Anthropic-backed classifier."""

    @pytest.fixture
    def mock_anthropic(self):
        """Create mock Anthropic client."""
        with patch("statement_processor.classifier.anthropic") as mock:
            mock_client = Mock()
            mock.Anthropic.return_value = mock_client

            mock_response = Mock()
            mock_response.content = [Mock(text='''Here is the result:
{
  "category": "food",
  "confidence": 0.92,
  "reasoning": "Restaurant payment"
}''')]
            mock_client.messages.create.return_value = mock_response

            yield mock

    def test_classify(self, mock_anthropic):
        classifier = ClaudeClassifier(api_key="test-key")

        verdict = classifier.classify("TRUFFLES CAFE", Decimal("800"))

        assert verdict.category == "food"
        assert verdict.confidence == 0.92
        assert verdict.reasoning == "Restaurant payment"

        kwargs = mock_anthropic.Anthropic.return_value.messages.create.call_args.kwargs
        prompt = kwargs["messages"][0]["content"]
        assert "TRUFFLES CAFE" in prompt
        assert "- investment (" in prompt

    def test_model_from_env(self, mock_anthropic, monkeypatch):
        monkeypatch.setenv("CLASSIFIER_MODEL", "claude-test-model")

        assert ClaudeClassifier().model == "claude-test-model"

    def test_api_failure(self, mock_anthropic):
        client = mock_anthropic.Anthropic.return_value
        client.messages.create.side_effect = RuntimeError("rate limited")

        with pytest.raises(ClassifierUnavailable):
            ClaudeClassifier().classify("X", Decimal("1"))

    def test_unknown_category_rejected(self):
        classifier = ClaudeClassifier(client=Mock())

        with pytest.raises(ClassifierUnavailable):
            classifier.parse_response('{"category": "luxury", "confidence": 0.9}')

    def test_no_json_rejected(self):
        classifier = ClaudeClassifier(client=Mock())

        with pytest.raises(ClassifierUnavailable):
            classifier.parse_response("I am not sure.")

    def test_confidence_clamped(self):
        classifier = ClaudeClassifier(client=Mock())

        verdict = classifier.parse_response('{"category": "FUEL", "confidence": 3}')

        assert verdict.category == "fuel"
        assert verdict.confidence == 1.0
