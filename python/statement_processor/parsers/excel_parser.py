"""
Spreadsheet Statement Parser

Reads the first worksheet of an .xlsx statement with openpyxl and applies the
same column detection as the CSV parser.
"""

import logging
from io import BytesIO
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import ParseError
from ..models import ParseResult
from .tabular import TabularStatementParser

logger = logging.getLogger(__name__)


class ExcelStatementParser(TabularStatementParser):
    """Spreadsheet parser for the first sheet of a workbook."""

    FILE_TYPE = "xlsx"

    def _extract(self, content: bytes, result: ParseResult) -> None:
        try:
            workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
        except (BadZipFile, InvalidFileException, KeyError, OSError) as e:
            raise ParseError(f"Spreadsheet parsing failed: {e}")

        try:
            sheet = workbook.worksheets[0] if workbook.worksheets else None
            if sheet is None:
                raise ParseError("Spreadsheet has no worksheets")

            rows = sheet.iter_rows(values_only=True)
            headers = None
            header_row = 0
            for header_row, row in enumerate(rows, start=1):
                if any(cell not in (None, "") for cell in row):
                    headers = list(row)
                    break

            if headers is None:
                raise ParseError("Spreadsheet must have a header and at least one data row")

            result.metadata["sheet_name"] = sheet.title
            data_rows = (
                (row_num, list(row))
                for row_num, row in enumerate(rows, start=header_row + 1)
            )
            self._extract_rows(headers, data_rows, result)
        finally:
            workbook.close()

        if not result.transactions and not result.skipped_rows:
            raise ParseError("Spreadsheet must have a header and at least one data row")
