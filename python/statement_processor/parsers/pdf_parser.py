"""
PDF Statement Parser

Extracts statement text with pdfplumber and scans it line by line for
date / description / amount rows. Extraction is best-effort: lines that do not
look like transactions are ignored.
"""

import logging
import re
from io import BytesIO

import pdfplumber

from ..errors import ParseError
from ..models import ParseResult
from .base import BaseStatementParser

logger = logging.getLogger(__name__)


class PDFStatementParser(BaseStatementParser):
    """Regex line scanner over extracted PDF text."""

    FILE_TYPE = "pdf"

    # Tried in order; the first pattern matching a line wins
    TRANSACTION_PATTERNS = [
        # DD/MM/YYYY DESCRIPTION AMOUNT
        re.compile(r'^(\d{2}/\d{2}/\d{4})\s+(.+?)\s+([\d,]+(?:\.\d+)?)\s*(?:Cr|Dr)?\s*$', re.IGNORECASE),
        # DD-MM-YYYY DESCRIPTION AMOUNT
        re.compile(r'^(\d{2}-\d{2}-\d{4})\s+(.+?)\s+([\d,]+(?:\.\d+)?)\s*(?:Cr|Dr)?\s*$', re.IGNORECASE),
        # YYYY-MM-DD DESCRIPTION AMOUNT
        re.compile(r'^(\d{4}-\d{2}-\d{2})\s+(.+?)\s+([\d,]+(?:\.\d+)?)\s*(?:Cr|Dr)?\s*$', re.IGNORECASE),
    ]
    DATE_FORMATS = ["%d/%m/%Y", "%d-%m-%Y", "%Y-%m-%d"]

    MIN_LINE_LENGTH = 10
    MIN_DESCRIPTION_LENGTH = 3

    def _extract(self, content: bytes, result: ParseResult) -> None:
        text = self.extract_text(content)
        result.metadata["page_text_length"] = len(text)
        self.extract_transactions_from_text(text, result)

    def extract_text(self, content: bytes) -> str:
        """Extract plain text from all pages.

        Raises:
            ParseError: If the PDF cannot be opened
        """
        pages_text = []
        try:
            with pdfplumber.open(BytesIO(content)) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text and page_text.strip():
                        pages_text.append(page_text)
        except Exception as e:
            raise ParseError(f"PDF parsing failed: {e}")

        return "\n".join(pages_text)

    def extract_transactions_from_text(self, text: str, result: ParseResult) -> None:
        """Scan text lines for transactions.

        Args:
            text: Statement text
            result: ParseResult to fill
        """
        for line_num, line in enumerate(text.split('\n'), start=1):
            trimmed = line.strip()
            if len(trimmed) < self.MIN_LINE_LENGTH:
                continue

            for pattern in self.TRANSACTION_PATTERNS:
                match = pattern.match(trimmed)
                if not match:
                    continue

                date_str, description, amount_str = match.groups()
                try:
                    txn = self._build_transaction(
                        date_str, description, amount_str, {"raw_line": trimmed}
                    )
                except ValueError as e:
                    self._skip_row(result, f"Line {line_num}", e)
                else:
                    result.transactions.append(txn)
                break

