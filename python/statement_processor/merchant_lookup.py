"""
Merchant Lookup Module

Fast lookup of known merchants to spending categories without using AI.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"


@dataclass
class MerchantMatch:
    """Result of a merchant lookup."""

    merchant_pattern: str
    category: str
    confidence: float
    match_type: str  # 'exact', 'pattern'

    def to_dict(self) -> dict:
        return {
            "merchant_pattern": self.merchant_pattern,
            "category": self.category,
            "confidence": self.confidence,
            "match_type": self.match_type,
        }


class MerchantLookup:
    """Merchant to category lookup using curated mappings."""

    def __init__(self, config_dir: Path | str | None = None, load: bool = True):
        """Initialize the merchant lookup.

        Args:
            config_dir: Path to configuration directory
            load: Whether to load merchant_mappings.json
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self._exact_matches: dict[str, dict] = {}
        self._pattern_matches: list[dict] = []
        self._confidence_threshold = 0.7
        if load:
            self._load_mappings()

    def _load_mappings(self) -> None:
        """Load merchant mappings from config file."""
        mappings_file = self.config_dir / "merchant_mappings.json"

        if not mappings_file.exists():
            logger.warning(f"Merchant mappings file not found: {mappings_file}")
            return

        try:
            with open(mappings_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load merchant mappings: {e}")
            return

        self.import_mappings(data)
        self._confidence_threshold = data.get("low_confidence_threshold", 0.7)

        logger.info(
            f"Loaded {len(self._exact_matches)} exact matches, "
            f"{len(self._pattern_matches)} pattern matches"
        )

    def lookup(self, merchant: str) -> MerchantMatch | None:
        """Look up a merchant in the mappings.

        Args:
            merchant: Derived merchant name

        Returns:
            MerchantMatch if found, None otherwise
        """
        if not merchant:
            return None

        merchant_upper = merchant.upper().strip()
        if not merchant_upper:
            return None

        # 1. Exact match on the full name, then on its first token
        for candidate in (merchant_upper, merchant_upper.split()[0]):
            if candidate in self._exact_matches:
                mapping = self._exact_matches[candidate]
                return MerchantMatch(
                    merchant_pattern=candidate,
                    category=mapping["category"],
                    confidence=mapping.get("confidence", 1.0),
                    match_type="exact",
                )

        # 2. Pattern matches
        for pattern_data in self._pattern_matches:
            pattern = pattern_data["pattern"]
            if re.search(pattern, merchant_upper, re.IGNORECASE):
                return MerchantMatch(
                    merchant_pattern=pattern,
                    category=pattern_data["category"],
                    confidence=pattern_data.get("confidence", 0.8),
                    match_type="pattern",
                )

        return None

    def get_confidence_threshold(self) -> float:
        """Get the configured low confidence threshold."""
        return self._confidence_threshold

    def add_mapping(
        self,
        merchant_pattern: str,
        category: str,
        confidence: float = 0.9,
        is_pattern: bool = False
    ) -> None:
        """Add or update a merchant mapping (runtime only, not persisted).

        Args:
            merchant_pattern: Exact merchant name or regex pattern
            category: Category
            confidence: Confidence score
            is_pattern: Whether this is a regex pattern
        """
        mapping = {
            "category": category,
            "confidence": confidence,
            "added_at": datetime.now().isoformat(),
        }

        if is_pattern:
            re.compile(merchant_pattern)
            self._pattern_matches = [
                p for p in self._pattern_matches if p["pattern"] != merchant_pattern
            ]
            self._pattern_matches.append({"pattern": merchant_pattern, **mapping})
        else:
            self._exact_matches[merchant_pattern.upper().strip()] = mapping

        logger.info(f"Added merchant mapping: {merchant_pattern} -> {category}")

    def export_mappings(self) -> dict:
        """Export the merchant table in the merchant_mappings.json layout."""
        return {
            "low_confidence_threshold": self._confidence_threshold,
            "exact_matches": {k: dict(v) for k, v in self._exact_matches.items()},
            "pattern_matches": [dict(p) for p in self._pattern_matches],
        }

    def import_mappings(self, data: dict) -> None:
        """Merge mappings from an exported dictionary."""
        for merchant, mapping in data.get("exact_matches", {}).items():
            self._exact_matches[merchant.upper().strip()] = dict(mapping)

        for pattern_data in data.get("pattern_matches", []):
            try:
                re.compile(pattern_data["pattern"])
            except (KeyError, re.error) as e:
                logger.warning(f"Skipping invalid merchant pattern {pattern_data}: {e}")
                continue
            self._pattern_matches.append(dict(pattern_data))
