"""
Service Dependencies

Shared pipeline services handed to routes through FastAPI dependencies so
tests can swap them with ``app.dependency_overrides``.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path

from rewards import CardOptimizer, RewardCalculator
from statement_processor import (
    ClaudeClassifier,
    JsonPatternStore,
    ProcessingStatusStore,
    StatementParser,
    TransactionCategorizer,
    UserPatternStore,
)

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    config_dir = os.getenv("CONFIG_DIR")
    return Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"


@lru_cache
def get_status_store() -> ProcessingStatusStore:
    return ProcessingStatusStore()


@lru_cache
def get_pattern_store() -> UserPatternStore:
    path = os.getenv("PATTERN_STORE_PATH")
    if path:
        return JsonPatternStore(path)
    return UserPatternStore()


@lru_cache
def get_classifier() -> ClaudeClassifier | None:
    if not os.getenv("ANTHROPIC_API_KEY"):
        logger.warning("ANTHROPIC_API_KEY not set, external classifier disabled")
        return None
    return ClaudeClassifier()


@lru_cache
def get_categorizer() -> TransactionCategorizer:
    return TransactionCategorizer(
        config_dir=get_config_dir(),
        pattern_store=get_pattern_store(),
        classifier=get_classifier(),
    )


@lru_cache
def get_statement_parser() -> StatementParser:
    return StatementParser(
        status_store=get_status_store(),
        categorizer=get_categorizer(),
    )


@lru_cache
def get_reward_calculator() -> RewardCalculator:
    return RewardCalculator(get_config_dir())


@lru_cache
def get_card_optimizer() -> CardOptimizer:
    return CardOptimizer(calculator=get_reward_calculator())
