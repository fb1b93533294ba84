"""
CSV Statement Parser

Parses CSV exports from any bank by auto-detecting the date, description and
amount columns from the header row.
"""

import csv
from io import StringIO

from ..errors import ParseError
from ..models import ParseResult
from .tabular import TabularStatementParser


class CSVStatementParser(TabularStatementParser):
    """CSV parser with header synonym matching."""

    FILE_TYPE = "csv"

    ENCODINGS = ("utf-8-sig", "latin-1")
    DELIMITERS = (",", ";", "\t", "|")

    def __init__(self, delimiter: str | None = None):
        """Initialize the parser.

        Args:
            delimiter: CSV delimiter, sniffed from the header line when omitted
        """
        self.delimiter = delimiter

    def _extract(self, content: bytes, result: ParseResult) -> None:
        text = self._decode(content)
        text = text.replace('\r\n', '\n').replace('\r', '\n')

        reader = csv.reader(StringIO(text), delimiter=self._detect_delimiter(text))
        headers = next(reader, None)

        # Blank lines above the header row
        while headers is not None and not any(cell.strip() for cell in headers):
            headers = next(reader, None)

        if not headers:
            raise ParseError("No header row found in CSV")

        rows = ((row_num, row) for row_num, row in enumerate(reader, start=2))
        self._extract_rows(headers, rows, result)

    def _decode(self, content: bytes) -> str:
        for encoding in self.ENCODINGS:
            try:
                return content.decode(encoding)
            except UnicodeDecodeError:
                continue
        raise ParseError("Unable to decode CSV file")

    def _detect_delimiter(self, text: str) -> str:
        if self.delimiter:
            return self.delimiter

        first_line = next((line for line in text.split("\n") if line.strip()), "")
        counts = {d: first_line.count(d) for d in self.DELIMITERS}
        best = max(counts, key=counts.get)
        return best if counts[best] else ","
