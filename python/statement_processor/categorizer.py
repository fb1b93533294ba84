"""
Transaction Categorizer Module

Assigns a spending category to each transaction by trying local keyword
rules, the merchant table, the user's learned patterns and finally the
external classifier. The first answer at or above the confidence threshold
wins; anything else falls back to ``others``.
"""

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import yaml

from .classifier import ClaudeClassifier
from .errors import ClassifierUnavailable
from .merchant_lookup import DEFAULT_CONFIG_DIR, MerchantLookup
from .models import DEFAULT_CATEGORY, Transaction
from .parsers.base import extract_merchant
from .pattern_store import UserPatternStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.7
FALLBACK_CONFIDENCE = 0.5
FAILED_BATCH_CONFIDENCE = 0.3
LEARNING_CONFIDENCE = 0.8
KEYWORD_WEIGHT = 1.0
PATTERN_WEIGHT = 1.5


class CategorizationMethod(str, Enum):
    RULE = "rule"
    MERCHANT_DB = "merchant-db"
    USER_PATTERN = "user-pattern"
    EXTERNAL_CLASSIFIER = "external-classifier"
    FALLBACK = "fallback"


@dataclass
class CategoryResult:
    """Category decision for one transaction."""

    category: str
    confidence: float
    method: CategorizationMethod
    details: str | None = None

    def __post_init__(self):
        self.confidence = min(max(float(self.confidence), 0.0), 1.0)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "confidence": round(self.confidence, 4),
            "method": self.method.value,
            "details": self.details,
        }


def fallback_result(confidence: float = FALLBACK_CONFIDENCE, details: str | None = None) -> CategoryResult:
    return CategoryResult(
        category=DEFAULT_CATEGORY,
        confidence=confidence,
        method=CategorizationMethod.FALLBACK,
        details=details,
    )


class RuleBasedStrategy:
    """Keyword and regex scoring over categories.yaml."""

    def __init__(self, config_dir: Path | str | None = None):
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.confidence_scale = 0.3
        self._rules: list[dict] = []
        self._load_rules()

    def _load_rules(self) -> None:
        rules_file = self.config_dir / "categories.yaml"

        if not rules_file.exists():
            logger.warning(f"Category rules file not found: {rules_file}")
            return

        with open(rules_file) as f:
            config = yaml.safe_load(f) or {}

        self.confidence_scale = float(config.get("confidence_scale", self.confidence_scale))

        for name, rule in (config.get("categories") or {}).items():
            keywords = [
                re.compile(r'\b' + re.escape(kw.lower()) + r'\b')
                for kw in rule.get("keywords", [])
            ]
            patterns = [re.compile(p, re.IGNORECASE) for p in rule.get("patterns", [])]
            self._rules.append({
                "category": name,
                "priority": max(int(rule.get("priority", 1)), 1),
                "keywords": keywords,
                "patterns": patterns,
            })

        logger.info(f"Loaded {len(self._rules)} category rules")

    def score(self, text: str) -> dict[str, float]:
        """Score every category that has at least one hit."""
        text = text.lower()
        scores = {}
        for rule in self._rules:
            hits = sum(KEYWORD_WEIGHT for kw in rule["keywords"] if kw.search(text))
            hits += sum(PATTERN_WEIGHT for p in rule["patterns"] if p.search(text))
            if hits:
                scores[rule["category"]] = hits / rule["priority"]
        return scores

    def attempt(self, txn: Transaction, user_id: str | None = None) -> CategoryResult | None:
        scores = self.score(f"{txn.description} {txn.merchant}")
        if not scores:
            return None

        # Ties go to the category listed first
        best = max(scores, key=scores.get)
        return CategoryResult(
            category=best,
            confidence=min(scores[best] * self.confidence_scale, 1.0),
            method=CategorizationMethod.RULE,
            details=f"Rule score {scores[best]:.2f}",
        )


class MerchantDatabaseStrategy:
    """Curated merchant table lookup."""

    def __init__(self, merchant_lookup: MerchantLookup):
        self.merchant_lookup = merchant_lookup

    def attempt(self, txn: Transaction, user_id: str | None = None) -> CategoryResult | None:
        match = self.merchant_lookup.lookup(txn.merchant or extract_merchant(txn.description))
        if not match:
            return None
        return CategoryResult(
            category=match.category,
            confidence=match.confidence,
            method=CategorizationMethod.MERCHANT_DB,
            details=f"Merchant {match.match_type} match: {match.merchant_pattern}",
        )


class UserPatternStrategy:
    """Patterns learned from this user's earlier categorizations."""

    def __init__(self, pattern_store: UserPatternStore):
        self.pattern_store = pattern_store

    def attempt(self, txn: Transaction, user_id: str | None = None) -> CategoryResult | None:
        if not user_id:
            return None
        pattern = self.pattern_store.match(user_id, txn.description)
        if not pattern:
            return None
        return CategoryResult(
            category=pattern.category,
            confidence=pattern.confidence,
            method=CategorizationMethod.USER_PATTERN,
            details=f"User pattern: {pattern.sample_description}",
        )


class ExternalClassifierStrategy:
    """Delegates to the external classifier; outages yield no answer."""

    def __init__(self, classifier: ClaudeClassifier):
        self.classifier = classifier

    def attempt(self, txn: Transaction, user_id: str | None = None) -> CategoryResult | None:
        try:
            verdict = self.classifier.classify(txn.description, txn.amount)
        except ClassifierUnavailable as e:
            logger.warning(f"External classifier unavailable for {txn.id}: {e}")
            return None
        return CategoryResult(
            category=verdict.category,
            confidence=verdict.confidence,
            method=CategorizationMethod.EXTERNAL_CLASSIFIER,
            details=verdict.reasoning,
        )


def pattern_for(txn: Transaction) -> str:
    """Regex matching the merchant part of a description, loose on whitespace."""
    merchant = txn.merchant or extract_merchant(txn.description) or txn.description
    return r'\s*'.join(re.escape(token) for token in merchant.split())


class TransactionCategorizer:
    """Categorizes transactions with an ordered list of strategies."""

    def __init__(
        self,
        config_dir: Path | str | None = None,
        merchant_lookup: MerchantLookup | None = None,
        pattern_store: UserPatternStore | None = None,
        classifier: ClaudeClassifier | None = None,
        confidence_threshold: float | None = None,
        strategies: list | None = None
    ):
        """Initialize the categorizer.

        Args:
            config_dir: Path to configuration directory
            merchant_lookup: Merchant table (loaded from config_dir if omitted)
            pattern_store: Learned pattern store (in-memory if omitted)
            classifier: External classifier, skipped when None
            confidence_threshold: Minimum confidence a strategy must reach,
                defaults to the merchant table's low_confidence_threshold
            strategies: Explicit strategy order, overrides the defaults
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.merchant_lookup = merchant_lookup or MerchantLookup(self.config_dir)
        self.pattern_store = pattern_store if pattern_store is not None else UserPatternStore()
        self.classifier = classifier
        if confidence_threshold is None:
            confidence_threshold = self.merchant_lookup.get_confidence_threshold()
        self.confidence_threshold = confidence_threshold

        if strategies is None:
            strategies = [
                RuleBasedStrategy(self.config_dir),
                MerchantDatabaseStrategy(self.merchant_lookup),
                UserPatternStrategy(self.pattern_store),
            ]
            if classifier:
                strategies.append(ExternalClassifierStrategy(classifier))
        self.strategies = strategies

    def categorize(self, txn: Transaction, user_id: str | None = None) -> CategoryResult:
        """Categorize a single transaction. Never raises."""
        for strategy in self.strategies:
            try:
                result = strategy.attempt(txn, user_id)
            except Exception as e:
                logger.warning(f"{type(strategy).__name__} failed for {txn.id}: {e}")
                continue

            if result and result.confidence >= self.confidence_threshold:
                return result

        return fallback_result()

    def categorize_batch(
        self,
        transactions: list[Transaction],
        user_id: str | None = None,
        batch_size: int = 50,
        max_workers: int = 8,
        pacing_seconds: float = 0.1
    ) -> list[CategoryResult]:
        """Categorize transactions in concurrent chunks.

        Args:
            transactions: Transactions to categorize
            user_id: Owner, enables learned patterns
            batch_size: Chunk size
            max_workers: Threads per chunk
            pacing_seconds: Pause between chunks

        Returns:
            One result per transaction, in input order
        """
        results: list[CategoryResult] = []

        for start in range(0, len(transactions), batch_size):
            chunk = transactions[start:start + batch_size]

            try:
                with ThreadPoolExecutor(max_workers=max_workers) as executor:
                    chunk_results = list(executor.map(lambda t: self.categorize(t, user_id), chunk))
            except Exception as e:
                logger.error(f"Batch categorization failed at offset {start}: {e}")
                chunk_results = [
                    fallback_result(FAILED_BATCH_CONFIDENCE, "Batch categorization failed")
                    for _ in chunk
                ]

            results.extend(chunk_results)

            if start + batch_size < len(transactions) and pacing_seconds:
                time.sleep(pacing_seconds)

        return results

    def learn(
        self,
        transactions: list[Transaction],
        results: list[CategoryResult],
        user_id: str
    ) -> int:
        """Store patterns for confidently categorized transactions.

        Returns:
            Number of patterns recorded
        """
        learned = 0
        for txn, result in zip(transactions, results):
            if result.confidence <= LEARNING_CONFIDENCE:
                continue
            pattern = pattern_for(txn)
            if not pattern:
                continue
            self.pattern_store.record(
                user_id, pattern, result.category, result.confidence, txn.description
            )
            learned += 1

        if learned:
            logger.info(f"Learned {learned} patterns for user {user_id}")
        return learned

    def record_feedback(self, user_id: str, txn: Transaction, category: str) -> CategoryResult:
        """Record a user's correction as a fully trusted pattern."""
        pattern = pattern_for(txn)
        self.pattern_store.record(user_id, pattern, category, 1.0, txn.description)
        logger.info(f"Recorded feedback for user {user_id}: {txn.description} -> {category}")
        return CategoryResult(
            category=category,
            confidence=1.0,
            method=CategorizationMethod.USER_PATTERN,
            details="User feedback",
        )

    def clear_user_patterns(self, user_id: str) -> None:
        self.pattern_store.clear(user_id)


def categorization_stats(
    results: list[CategoryResult],
    low_confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
) -> dict:
    """Summarize a batch of category results."""
    total = len(results)
    categories: dict[str, int] = {}
    methods: dict[str, int] = {}
    for result in results:
        categories[result.category] = categories.get(result.category, 0) + 1
        methods[result.method.value] = methods.get(result.method.value, 0) + 1

    categorized = total - methods.get(CategorizationMethod.FALLBACK.value, 0)

    return {
        "total": total,
        "categories": categories,
        "methods": methods,
        "average_confidence": round(sum(r.confidence for r in results) / total, 4) if total else 0,
        "low_confidence": sum(1 for r in results if r.confidence < low_confidence_threshold),
        "categorization_rate": round(categorized / total, 4) if total else 0,
    }
