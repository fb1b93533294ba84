"""
Statement file parsers (PDF, CSV, spreadsheet).
"""

from .base import BaseStatementParser, extract_merchant, mark_recurring
from .csv_parser import CSVStatementParser
from .excel_parser import ExcelStatementParser
from .pdf_parser import PDFStatementParser
from .tabular import TabularStatementParser

__all__ = [
    "BaseStatementParser",
    "TabularStatementParser",
    "CSVStatementParser",
    "ExcelStatementParser",
    "PDFStatementParser",
    "extract_merchant",
    "mark_recurring",
]
