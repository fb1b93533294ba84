"""
Shared API Schemas

Request models used by more than one router, plus conversion into the
pipeline's domain types.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from rewards import CardProfile
from statement_processor import Transaction


class TransactionIn(BaseModel):
    """Transaction as sent by API clients."""

    date: date
    description: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    merchant: str = ""
    category: str = "others"
    is_recurring: bool = False

    def to_transaction(self) -> Transaction:
        return Transaction.from_dict(self.model_dump())


def to_transactions(items: list[TransactionIn]) -> list[Transaction]:
    return [item.to_transaction() for item in items]


def to_card(data: dict[str, Any]) -> CardProfile:
    """Validate a card payload; raises ValidationError."""
    return CardProfile.from_dict(data)
