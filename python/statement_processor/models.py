"""
Statement Models

Transaction and parse result records shared by the parser and categorizer.
"""

import hashlib
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError

DEFAULT_CATEGORY = "others"

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Transaction:
    """One line item from a card statement."""

    date: date
    description: str
    amount: Decimal
    merchant: str = ""
    category: str = DEFAULT_CATEGORY
    is_recurring: bool = False
    raw_data: dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def id(self) -> str:
        """Stable identifier for de-duplication and re-processing."""
        amount = self.amount.quantize(CENT, ROUND_HALF_UP)
        data = f"{self.date.isoformat()}|{self.description}|{amount}"
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    @property
    def month(self) -> str:
        return self.date.strftime("%Y-%m")

    def with_category(self, category: str) -> "Transaction":
        """Return a copy carrying the given category."""
        return replace(self, category=category or DEFAULT_CATEGORY)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "merchant": self.merchant,
            "amount": float(self.amount),
            "category": self.category,
            "is_recurring": self.is_recurring,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        """Build a transaction from a loosely shaped mapping.

        Raises:
            ValidationError: If date, description or amount are unusable
        """
        errors = []

        raw_date = data.get("date")
        txn_date = None
        if isinstance(raw_date, datetime):
            txn_date = raw_date.date()
        elif isinstance(raw_date, date):
            txn_date = raw_date
        elif isinstance(raw_date, str):
            try:
                txn_date = date.fromisoformat(raw_date.strip()[:10])
            except ValueError:
                errors.append(f"Invalid date: {raw_date}")
        else:
            errors.append("Transaction date is required")

        description = str(data.get("description") or "").strip()
        if not description:
            errors.append("Transaction description is required")

        amount = None
        raw_amount = data.get("amount")
        try:
            amount = Decimal(str(raw_amount))
            if not amount.is_finite():
                raise InvalidOperation
            if amount < 0:
                errors.append(f"Amount must be non-negative: {raw_amount}")
        except (InvalidOperation, ValueError):
            errors.append(f"Invalid amount: {raw_amount}")

        if errors:
            raise ValidationError("Invalid transaction", errors)

        return cls(
            date=txn_date,
            description=description,
            amount=amount,
            merchant=str(data.get("merchant") or ""),
            category=str(data.get("category") or DEFAULT_CATEGORY),
            is_recurring=bool(data.get("is_recurring", False)),
        )


@dataclass
class ParseResult:
    """Result of parsing one statement file."""

    file_type: str
    transactions: list[Transaction] = field(default_factory=list)
    summary: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)
    skipped_rows: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def total_amount(self) -> Decimal:
        return sum((t.amount for t in self.transactions), Decimal("0"))

    def to_dict(self) -> dict:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "summary": self.summary,
            "metadata": self.metadata,
            "skipped_rows": self.skipped_rows,
            "warnings": self.warnings,
        }
