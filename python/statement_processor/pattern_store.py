"""
User Pattern Store Module

Per-user regular expressions learned from confident categorizations.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class LearnedPattern:
    """A merchant regex learned for one user."""

    pattern: str
    category: str
    confidence: float
    sample_description: str = ""
    count: int = 1
    last_seen: datetime = field(default_factory=datetime.now)

    @property
    def score(self) -> float:
        return self.confidence * self.count

    def matches(self, text: str) -> bool:
        return re.search(self.pattern, text, re.IGNORECASE) is not None

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "category": self.category,
            "confidence": self.confidence,
            "sample_description": self.sample_description,
            "count": self.count,
            "last_seen": self.last_seen.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LearnedPattern":
        return cls(
            pattern=data["pattern"],
            category=data["category"],
            confidence=float(data.get("confidence", 0.8)),
            sample_description=data.get("sample_description", ""),
            count=int(data.get("count", 1)),
            last_seen=datetime.fromisoformat(data["last_seen"]) if data.get("last_seen") else datetime.now(),
        )


class UserPatternStore:
    """In-memory learned-pattern store keyed by user id.

    Concurrent updates for the same user are not serialized.
    """

    MAX_PATTERNS_PER_USER = 50
    CONFIDENCE_STEP = 0.1

    def __init__(self, max_patterns: int | None = None):
        self.max_patterns = max_patterns or self.MAX_PATTERNS_PER_USER
        self._patterns: dict[str, list[LearnedPattern]] = {}

    def get_patterns(self, user_id: str) -> list[LearnedPattern]:
        return list(self._patterns.get(user_id, []))

    def match(self, user_id: str, text: str) -> LearnedPattern | None:
        """Return the first stored pattern matching the text."""
        for pattern in self._patterns.get(user_id, []):
            if pattern.matches(text):
                return pattern
        return None

    def record(
        self,
        user_id: str,
        pattern: str,
        category: str,
        confidence: float,
        sample_description: str = ""
    ) -> LearnedPattern:
        """Store a sighting of (category, pattern) for a user.

        Repeat sightings raise confidence by a fixed step (capped at 1.0) and
        bump the hit count. The store is then pruned to the best patterns by
        confidence x count.
        """
        patterns = self._patterns.get(user_id, [])
        now = datetime.now()

        existing = next(
            (p for p in patterns if p.category == category and p.pattern == pattern),
            None,
        )
        if existing:
            existing.count += 1
            existing.last_seen = now
            existing.confidence = min(existing.confidence + self.CONFIDENCE_STEP, 1.0)
            learned = existing
        else:
            learned = LearnedPattern(
                pattern=pattern,
                category=category,
                confidence=min(max(confidence, 0.0), 1.0),
                sample_description=sample_description,
                last_seen=now,
            )
            patterns.append(learned)

        patterns.sort(key=lambda p: p.score, reverse=True)
        self._patterns[user_id] = patterns[:self.max_patterns]
        self._on_change(user_id)
        return learned

    def clear(self, user_id: str) -> None:
        self._patterns.pop(user_id, None)
        self._on_change(user_id)

    def export(self) -> dict:
        return {
            user_id: [p.to_dict() for p in patterns]
            for user_id, patterns in self._patterns.items()
        }

    def load(self, data: dict) -> None:
        for user_id, patterns in data.items():
            loaded = [LearnedPattern.from_dict(p) for p in patterns]
            loaded.sort(key=lambda p: p.score, reverse=True)
            self._patterns[user_id] = loaded[:self.max_patterns]

    def _on_change(self, user_id: str) -> None:
        pass


class JsonPatternStore(UserPatternStore):
    """Pattern store persisted to a JSON file after every change."""

    def __init__(self, path: Path | str, max_patterns: int | None = None):
        super().__init__(max_patterns)
        self.path = Path(path)

        if self.path.exists():
            try:
                with open(self.path) as f:
                    self.load(json.load(f))
            except (OSError, json.JSONDecodeError, KeyError) as e:
                logger.error(f"Failed to load user patterns from {self.path}: {e}")

    def _on_change(self, user_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self.export(), f, indent=2)
