"""
Base Statement Parser Module

Abstract base class for statement parsers plus the shared date, amount and
merchant cleaning helpers.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ..models import ParseResult, Transaction

logger = logging.getLogger(__name__)

# Descriptions repeated with amounts this close are treated as recurring
RECURRING_AMOUNT_TOLERANCE = Decimal("1")

MERCHANT_PREFIXES = re.compile(r'^(pos|atm|upi|imps|neft|rtgs|card|txn)\b[\s/:-]*', re.IGNORECASE)
MERCHANT_SUFFIXES = re.compile(r'\s*\b(india|pvt\.? ltd\.?|private limited|limited|ltd\.?|inc\.?|corp\.?)$', re.IGNORECASE)
MERCHANT_MAX_TOKENS = 3


def extract_merchant(description: str) -> str:
    """Derive a short merchant name from a raw statement description.

    Args:
        description: Transaction description as extracted

    Returns:
        Up to three meaningful tokens, or an empty string
    """
    merchant = description.strip()

    # Prefixes can be stacked ("POS UPI ...")
    previous = None
    while previous != merchant:
        previous = merchant
        merchant = MERCHANT_PREFIXES.sub('', merchant)

    merchant = re.sub(r'\s+-\s+.*$', '', merchant)
    merchant = MERCHANT_SUFFIXES.sub('', merchant)
    merchant = re.sub(r'\d+', '', merchant)

    words = [w for w in re.split(r'\s+', merchant) if len(w.strip('*#/.,-')) > 2]
    return " ".join(w.strip('*#/,') for w in words[:MERCHANT_MAX_TOKENS])


def mark_recurring(transactions: list[Transaction]) -> list[Transaction]:
    """Flag transactions repeated with the same description on another date."""
    by_description: dict[str, list[Transaction]] = {}
    for txn in transactions:
        by_description.setdefault(txn.description.lower(), []).append(txn)

    marked = []
    for txn in transactions:
        similar = by_description[txn.description.lower()]
        is_recurring = any(
            other.date != txn.date
            and abs(other.amount - txn.amount) < RECURRING_AMOUNT_TOLERANCE
            for other in similar
        )
        marked.append(replace(txn, is_recurring=is_recurring))
    return marked


class BaseStatementParser(ABC):
    """Abstract base class for statement parsers."""

    FILE_TYPE: str = "unknown"

    # Day-first formats come before month-first ones
    DATE_FORMATS = [
        "%d/%m/%Y",
        "%d-%m-%Y",
        "%Y-%m-%d",
        "%m/%d/%Y",
        "%d/%m/%y",
        "%d-%m-%y",
        "%d-%b-%Y",
        "%d %b %Y",
    ]

    MIN_DESCRIPTION_LENGTH = 2

    def parse_content(self, content: bytes) -> ParseResult:
        """Parse raw file content.

        Args:
            content: File contents as bytes

        Returns:
            ParseResult with transactions sorted by date

        Raises:
            ParseError: If the file cannot be processed at all
        """
        result = ParseResult(file_type=self.FILE_TYPE)
        self._extract(content, result)
        self._post_process(result)
        return result

    @abstractmethod
    def _extract(self, content: bytes, result: ParseResult) -> None:
        """Extract transactions from content into the result.

        Rows that cannot be parsed should be counted via ``_skip_row``.
        """
        pass

    def _skip_row(self, result: ParseResult, location: str, reason: Any) -> None:
        logger.debug(f"Skipping {location}: {reason}")
        result.skipped_rows += 1
        result.warnings.append(f"{location}: {reason}")

    def _post_process(self, result: ParseResult) -> None:
        """Sort by date and flag recurring transactions."""
        result.transactions.sort(key=lambda t: t.date)
        result.transactions = mark_recurring(result.transactions)

    def _build_transaction(
        self,
        date_value: Any,
        description: Any,
        amount_value: Any,
        raw_data: dict | None = None
    ) -> Transaction:
        """Build a transaction from raw cell values.

        Raises:
            ValueError: If any field is unusable
        """
        txn_date = self._parse_date(date_value)

        clean_description = re.sub(r'\s+', ' ', str(description or '')).strip()
        if len(clean_description) < self.MIN_DESCRIPTION_LENGTH:
            raise ValueError(f"Description too short: {description!r}")

        amount = self._parse_amount(amount_value)

        return Transaction(
            date=txn_date,
            description=clean_description,
            amount=amount,
            merchant=extract_merchant(clean_description),
            raw_data=raw_data or {},
        )

    def _parse_date(self, value: Any) -> date:
        """Parse a date using the accepted format list.

        Args:
            value: Date string, or a date/datetime cell value

        Returns:
            Parsed date

        Raises:
            ValueError: If date cannot be parsed
        """
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if value is None:
            raise ValueError("Missing date")

        date_str = str(value).strip()

        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(date_str, fmt).date()
            except ValueError:
                continue

        raise ValueError(f"Cannot parse date: {date_str}")

    def _parse_amount(self, value: Any) -> Decimal:
        """Parse an amount to a non-negative Decimal.

        Args:
            value: Amount string (may include currency symbols, commas,
                Cr/Dr markers) or a numeric cell value

        Returns:
            Absolute amount

        Raises:
            ValueError: If the amount cannot be parsed
        """
        if isinstance(value, bool) or value is None:
            raise ValueError(f"Cannot parse amount: {value!r}")

        if isinstance(value, (int, float, Decimal)):
            cleaned = str(value)
        else:
            cleaned = re.sub(r'(₹|rs\.?|inr|\$|\s)', '', str(value), flags=re.IGNORECASE)
            cleaned = re.sub(r'(cr|dr)$', '', cleaned, flags=re.IGNORECASE)
            if cleaned.startswith('(') and cleaned.endswith(')'):
                cleaned = cleaned[1:-1]
            cleaned = cleaned.replace(',', '').lstrip('+-')

        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Cannot parse amount: {value!r}")

        if not amount.is_finite():
            raise ValueError(f"Cannot parse amount: {value!r}")

        return abs(amount)
