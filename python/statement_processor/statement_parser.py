"""
Statement Parser Module

Entry point for turning an uploaded statement file into transactions: picks
the file-type parser, optionally categorizes the result, builds the summary
and tracks per-file processing status.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from .categorizer import TransactionCategorizer, categorization_stats
from .errors import ParseError
from .models import ParseResult, Transaction
from .parsers import CSVStatementParser, ExcelStatementParser, PDFStatementParser
from .parsers.base import BaseStatementParser

logger = logging.getLogger(__name__)

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

CENT = Decimal("0.01")


@dataclass
class ProcessingStatus:
    """Processing state of one uploaded file."""

    status: str
    progress: int = 0
    error: str | None = None
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "progress": self.progress,
            "error": self.error,
            "last_updated": self.last_updated.isoformat(),
        }


class ProcessingStatusStore:
    """In-memory status and result cache keyed by ``user_id:file_id``."""

    def __init__(self):
        self._statuses: dict[str, ProcessingStatus] = {}
        self._results: dict[str, ParseResult] = {}

    @staticmethod
    def key(user_id: str, file_id: str) -> str:
        return f"{user_id}:{file_id}"

    def update(
        self,
        user_id: str,
        file_id: str,
        status: str,
        progress: int,
        error: str | None = None
    ) -> ProcessingStatus:
        record = ProcessingStatus(status=status, progress=progress, error=error)
        self._statuses[self.key(user_id, file_id)] = record
        return record

    def get(self, user_id: str, file_id: str) -> ProcessingStatus | None:
        return self._statuses.get(self.key(user_id, file_id))

    def save_result(self, user_id: str, file_id: str, result: ParseResult) -> None:
        self._results[self.key(user_id, file_id)] = result

    def get_result(self, user_id: str, file_id: str) -> ParseResult | None:
        return self._results.get(self.key(user_id, file_id))

    def delete(self, user_id: str, file_id: str) -> bool:
        key = self.key(user_id, file_id)
        found = key in self._statuses or key in self._results
        self._statuses.pop(key, None)
        self._results.pop(key, None)
        return found

    def list_for_user(self, user_id: str) -> dict[str, ProcessingStatus]:
        prefix = f"{user_id}:"
        return {
            key[len(prefix):]: status
            for key, status in self._statuses.items()
            if key.startswith(prefix)
        }


def build_summary(
    transactions: list[Transaction],
    top_n: int = 5,
    include_categories: bool = True
) -> dict:
    """Generate summary statistics for a set of transactions.

    Args:
        transactions: Transactions sorted by date
        top_n: Number of merchants to list
        include_categories: Whether category subtotals are meaningful yet

    Returns:
        Summary dictionary
    """
    if not transactions:
        summary = {
            "total_transactions": 0,
            "total_amount": 0.0,
            "avg_transaction_amount": 0.0,
            "date_range": {"from": None, "to": None},
            "top_merchants": [],
        }
        if include_categories:
            summary["categories"] = {}
        return summary

    total = sum((t.amount for t in transactions), Decimal("0"))

    summary = {
        "total_transactions": len(transactions),
        "total_amount": float(total.quantize(CENT, ROUND_HALF_UP)),
        "avg_transaction_amount": float(
            (total / len(transactions)).quantize(CENT, ROUND_HALF_UP)
        ),
        "date_range": {
            "from": min(t.date for t in transactions).isoformat(),
            "to": max(t.date for t in transactions).isoformat(),
        },
        "top_merchants": top_merchants(transactions, top_n),
    }

    if include_categories:
        categories: dict[str, dict] = {}
        for txn in transactions:
            entry = categories.setdefault(
                txn.category, {"count": 0, "amount": Decimal("0")}
            )
            entry["count"] += 1
            entry["amount"] += txn.amount

        summary["categories"] = {
            category: {
                "count": data["count"],
                "amount": float(data["amount"]),
                "percentage": round(float(data["amount"] / total * 100)) if total else 0,
            }
            for category, data in categories.items()
        }

    return summary


def top_merchants(transactions: list[Transaction], limit: int = 5) -> list[dict]:
    """Rank merchants by total spend."""
    spending: dict[str, dict] = {}
    for txn in transactions:
        name = txn.merchant or txn.description
        entry = spending.setdefault(name, {"amount": Decimal("0"), "count": 0})
        entry["amount"] += txn.amount
        entry["count"] += 1

    ranked = sorted(spending.items(), key=lambda item: item[1]["amount"], reverse=True)
    return [
        {
            "merchant": merchant,
            "amount": float(data["amount"].quantize(CENT, ROUND_HALF_UP)),
            "transactions": data["count"],
        }
        for merchant, data in ranked[:limit]
    ]


class StatementParser:
    """Parses statement files and tracks their processing status."""

    PARSERS: dict[str, type[BaseStatementParser]] = {
        "pdf": PDFStatementParser,
        "csv": CSVStatementParser,
        "xlsx": ExcelStatementParser,
    }

    EXTENSIONS = {
        ".pdf": "pdf",
        ".csv": "csv",
        ".txt": "csv",
        ".xlsx": "xlsx",
        ".xlsm": "xlsx",
    }

    KIND_ALIASES = {
        "excel": "xlsx",
        "spreadsheet": "xlsx",
        "xlsm": "xlsx",
    }

    def __init__(
        self,
        status_store: ProcessingStatusStore | None = None,
        categorizer: TransactionCategorizer | None = None,
        top_merchant_count: int = 5
    ):
        """Initialize the statement parser.

        Args:
            status_store: Store for per-file status and results
            categorizer: Optional categorizer applied after parsing
            top_merchant_count: Number of merchants in the summary
        """
        self.status_store = status_store or ProcessingStatusStore()
        self.categorizer = categorizer
        self.top_merchant_count = top_merchant_count

    def detect_file_type(
        self,
        file_name: str | None,
        content: bytes,
        file_kind: str | None = None
    ) -> str:
        """Work out which parser handles a file.

        Raises:
            ParseError: If the type is unsupported
        """
        if file_kind:
            kind = file_kind.lower().lstrip(".")
            kind = self.KIND_ALIASES.get(kind, kind)
            if kind in self.PARSERS:
                return kind
            raise ParseError(f"Unsupported file type: {file_kind}")

        ext = Path(file_name).suffix.lower() if file_name else ""
        if ext in self.EXTENSIONS:
            return self.EXTENSIONS[ext]
        if ext:
            raise ParseError(f"Unsupported file type: {ext}")

        # Fall back to content sniffing
        if content[:4] == b"%PDF":
            return "pdf"
        if content[:4] == b"PK\x03\x04":
            return "xlsx"
        if b"," in content[:1000] and b"\n" in content[:1000]:
            return "csv"

        raise ParseError("Unsupported file type: could not detect format")

    def parse(
        self,
        content: bytes,
        file_name: str | None = None,
        *,
        file_kind: str | None = None,
        user_id: str | None = None,
        file_id: str | None = None,
        categorize: bool = True
    ) -> ParseResult:
        """Parse a statement file.

        Args:
            content: Raw file bytes
            file_name: Original file name (used for type detection)
            file_kind: Explicit type, overrides detection
            user_id: Owner, enables status tracking
            file_id: File identifier, defaults to a content hash
            categorize: Run the injected categorizer on the transactions

        Returns:
            ParseResult with transactions, summary and metadata

        Raises:
            ParseError: If the file is unreadable, unsupported, or lacks
                required columns
        """
        start = time.perf_counter()
        file_id = file_id or hashlib.sha256(content).hexdigest()[:16]

        if user_id:
            self.status_store.update(user_id, file_id, STATUS_PROCESSING, 0)

        try:
            if not content:
                raise ParseError("File is empty")

            kind = self.detect_file_type(file_name, content, file_kind)
            logger.info(f"Parsing {kind} statement: {file_name or file_id}")

            result = self.PARSERS[kind]().parse_content(content)

            categorized = False
            if categorize and self.categorizer and result.transactions:
                if user_id:
                    self.status_store.update(user_id, file_id, STATUS_PROCESSING, 50)
                results = self.categorizer.categorize_batch(result.transactions, user_id)
                result.transactions = [
                    txn.with_category(res.category)
                    for txn, res in zip(result.transactions, results)
                ]
                result.metadata["categorization"] = categorization_stats(results)
                categorized = True

            result.summary = build_summary(
                result.transactions, self.top_merchant_count, include_categories=categorized
            )

            transactions = result.transactions
            result.metadata.update({
                "file_id": file_id,
                "file_name": file_name,
                "file_type": kind,
                "total_transactions": len(transactions),
                "skipped_rows": result.skipped_rows,
                "date_range": result.summary["date_range"],
                "processing_time_ms": round((time.perf_counter() - start) * 1000, 2),
            })

        except ParseError as e:
            logger.error(f"Parsing error for {file_id}: {e.message}")
            if user_id:
                self.status_store.update(user_id, file_id, STATUS_ERROR, 0, e.message)
            raise
        except Exception as e:
            logger.error(f"Unexpected parsing error for {file_id}: {e}")
            if user_id:
                self.status_store.update(user_id, file_id, STATUS_ERROR, 0, str(e))
            raise ParseError(f"Statement parsing failed: {e}") from e

        if result.skipped_rows:
            logger.warning(f"Skipped {result.skipped_rows} unparsable rows in {file_id}")

        if user_id:
            self.status_store.save_result(user_id, file_id, result)
            self.status_store.update(user_id, file_id, STATUS_COMPLETED, 100)

        return result

    def parse_file(
        self,
        file_path: Path | str,
        *,
        user_id: str | None = None,
        file_id: str | None = None,
        categorize: bool = True
    ) -> ParseResult:
        """Parse a statement from disk.

        Raises:
            ParseError: If the file is missing or cannot be parsed
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ParseError(f"File not found: {file_path}")

        try:
            content = file_path.read_bytes()
        except OSError as e:
            raise ParseError(f"Failed to read file: {e}")

        return self.parse(
            content,
            file_path.name,
            user_id=user_id,
            file_id=file_id or file_path.stem,
            categorize=categorize,
        )

    def get_status(self, user_id: str, file_id: str) -> ProcessingStatus | None:
        return self.status_store.get(user_id, file_id)

    def get_result(self, user_id: str, file_id: str) -> ParseResult | None:
        return self.status_store.get_result(user_id, file_id)

    def list_statements(self, user_id: str) -> dict[str, ProcessingStatus]:
        return self.status_store.list_for_user(user_id)

    def delete_statement(self, user_id: str, file_id: str) -> bool:
        """Forget the status and cached result for a file."""
        return self.status_store.delete(user_id, file_id)
