"""
Statement Processor Module

Parses card statements (PDF, CSV, spreadsheet) into transactions and assigns
spending categories using rules, a merchant table, learned user patterns and
the Claude API.
"""

from .categorizer import (
    CategorizationMethod,
    CategoryResult,
    TransactionCategorizer,
    categorization_stats,
)
from .classifier import ClaudeClassifier, ClassifierVerdict
from .errors import ClassifierUnavailable, ParseError, PipelineError, ValidationError
from .merchant_lookup import MerchantLookup, MerchantMatch
from .models import ParseResult, Transaction
from .pattern_store import JsonPatternStore, LearnedPattern, UserPatternStore
from .statement_parser import (
    ProcessingStatus,
    ProcessingStatusStore,
    StatementParser,
    build_summary,
)

__all__ = [
    # Parsing
    "StatementParser",
    "ProcessingStatus",
    "ProcessingStatusStore",
    "ParseResult",
    "Transaction",
    "build_summary",
    # Categorization
    "TransactionCategorizer",
    "CategoryResult",
    "CategorizationMethod",
    "categorization_stats",
    "ClaudeClassifier",
    "ClassifierVerdict",
    "MerchantLookup",
    "MerchantMatch",
    "UserPatternStore",
    "JsonPatternStore",
    "LearnedPattern",
    # Errors
    "PipelineError",
    "ParseError",
    "ValidationError",
    "ClassifierUnavailable",
]
