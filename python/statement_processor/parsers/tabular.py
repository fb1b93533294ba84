"""
Tabular Statement Parser Module

Shared column auto-detection for CSV and spreadsheet statements.
"""

import logging
from typing import Any, Iterable

from ..errors import ParseError
from ..models import ParseResult
from .base import BaseStatementParser

logger = logging.getLogger(__name__)


class TabularStatementParser(BaseStatementParser):
    """Base for row/column statements with fuzzy header matching."""

    # Synonyms per required role, matched case-insensitively as substrings
    COLUMN_SYNONYMS = {
        "date": [
            "transaction date", "txn date", "trans date", "posting date",
            "value date", "date",
        ],
        "amount": [
            "transaction amount", "txn amount", "amount", "debit", "credit",
            "value", "inr",
        ],
        "description": [
            "transaction description", "txn description", "description",
            "merchant", "narration", "particulars", "details", "remarks",
        ],
    }
    REQUIRED_ROLES = ("date", "description", "amount")

    def detect_columns(self, headers: list[Any]) -> dict[str, int]:
        """Map each required role to a column index.

        Args:
            headers: Header row cells

        Returns:
            Dictionary mapping role name to column index

        Raises:
            ParseError: If any required role cannot be resolved
        """
        normalized = [str(h).strip().lower() if h is not None else "" for h in headers]
        mapping: dict[str, int] = {}
        used: set[int] = set()

        for role in self.REQUIRED_ROLES:
            index = self._find_column(normalized, self.COLUMN_SYNONYMS[role], used)
            if index is not None:
                mapping[role] = index
                used.add(index)

        missing = [role for role in self.REQUIRED_ROLES if role not in mapping]
        if missing:
            raise ParseError(
                f"Missing required columns: {', '.join(missing)}",
                details={
                    "missing_columns": missing,
                    "headers": [str(h) for h in headers if h is not None],
                },
            )

        return mapping

    def _find_column(
        self,
        headers: list[str],
        synonyms: list[str],
        used: set[int]
    ) -> int | None:
        # Earlier synonyms are more specific, so they win over header order
        for synonym in synonyms:
            for index, header in enumerate(headers):
                if index not in used and header and synonym in header:
                    return index
        return None

    def _extract_rows(
        self,
        headers: list[Any],
        rows: Iterable[tuple[int, list[Any]]],
        result: ParseResult
    ) -> None:
        """Convert data rows into transactions, skipping unusable rows.

        Args:
            headers: Header row cells
            rows: (row number, cells) pairs
            result: ParseResult to fill
        """
        mapping = self.detect_columns(headers)
        result.metadata["column_mapping"] = {
            role: str(headers[index]) for role, index in mapping.items()
        }

        for row_num, cells in rows:
            if not any(c not in (None, "") for c in cells):
                continue

            values = {role: self._cell(cells, index) for role, index in mapping.items()}
            raw = {
                str(h): cells[i] if i < len(cells) else None
                for i, h in enumerate(headers) if h is not None
            }
            try:
                txn = self._build_transaction(
                    values["date"], values["description"], values["amount"], raw
                )
            except ValueError as e:
                self._skip_row(result, f"Row {row_num}", e)
                continue

            result.transactions.append(txn)

    @staticmethod
    def _cell(cells: list[Any], index: int) -> Any:
        if index >= len(cells):
            return None
        value = cells[index]
        return value.strip() if isinstance(value, str) else value
