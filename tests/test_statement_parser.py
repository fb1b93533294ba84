"""
Statement Parser Tests

Tests for file type detection, CSV/spreadsheet/PDF parsing, merchant
derivation, summaries and processing status tracking.
"""

from datetime import date
from decimal import Decimal
from io import BytesIO
from unittest.mock import MagicMock, Mock, patch

import pytest
from openpyxl import Workbook

from statement_processor import (
    ParseError,
    ProcessingStatusStore,
    StatementParser,
    TransactionCategorizer,
    build_summary,
)
from statement_processor.models import ParseResult, Transaction
from statement_processor.parsers import (
    CSVStatementParser,
    ExcelStatementParser,
    PDFStatementParser,
    extract_merchant,
    mark_recurring,
)


def workbook_bytes(rows: list[list]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestMerchantExtraction:
    """Tests for merchant derivation from descriptions."""

    def test_strips_prefixes_and_digits(self):
        assert extract_merchant("POS ZOMATO ORDER 1234") == "ZOMATO ORDER"

    def test_stacked_prefixes(self):
        assert extract_merchant("UPI/POS SWIGGY") == "SWIGGY"

    def test_drops_text_after_dash(self):
        assert extract_merchant("AMAZON PAY - REF 998877") == "AMAZON PAY"

    def test_strips_company_suffix(self):
        assert extract_merchant("RELIANCE RETAIL PVT LTD") == "RELIANCE RETAIL"

    def test_keeps_three_tokens(self):
        assert extract_merchant("ONE TWO THREE FOUR FIVE") == "ONE TWO THREE"

    def test_short_tokens_dropped(self):
        assert extract_merchant("AB 12 CD") == ""


class TestRecurringDetection:
    """Tests for recurring transaction flags."""

    def test_same_description_different_dates(self):
        txns = [
            Transaction(date(2025, 7, 1), "NETFLIX", Decimal("649")),
            Transaction(date(2025, 8, 1), "netflix", Decimal("649.50")),
            Transaction(date(2025, 8, 3), "ZOMATO", Decimal("300")),
        ]

        marked = mark_recurring(txns)

        assert [t.is_recurring for t in marked] == [True, True, False]

    def test_amount_outside_tolerance(self):
        txns = [
            Transaction(date(2025, 7, 1), "GYM", Decimal("1000")),
            Transaction(date(2025, 8, 1), "GYM", Decimal("1500")),
        ]

        assert not any(t.is_recurring for t in mark_recurring(txns))

    def test_same_date_is_not_recurring(self):
        txns = [
            Transaction(date(2025, 7, 1), "CAFE", Decimal("200")),
            Transaction(date(2025, 7, 1), "CAFE", Decimal("200")),
        ]

        assert not any(t.is_recurring for t in mark_recurring(txns))


class TestCSVStatementParser:
    """Tests for CSV parsing."""

    @pytest.fixture
    def parser(self):
        return CSVStatementParser()

    def test_scenario_a_minimal_csv(self, config_dir):
        content = b"Date,Merchant,Amount\n10/08/2025,Zomato Order,540\n"
        statement_parser = StatementParser(categorizer=TransactionCategorizer(config_dir))

        result = statement_parser.parse(content, "statement.csv")

        assert result.transaction_count == 1
        txn = result.transactions[0]
        assert txn.date == date(2025, 8, 10)
        assert txn.merchant == "Zomato Order"
        assert txn.amount == Decimal("540")
        assert txn.category == "food"

    def test_cleans_amounts_and_skips_bad_rows(self, parser, sample_csv_content):
        result = parser.parse_content(sample_csv_content)

        assert result.transaction_count == 3
        assert result.skipped_rows == 1
        assert len(result.warnings) == 1
        amounts = [t.amount for t in result.transactions]
        assert amounts == [Decimal("2000"), Decimal("1250.00"), Decimal("649")]

    def test_sorted_by_date(self, parser, sample_csv_content):
        result = parser.parse_content(sample_csv_content)

        dates = [t.date for t in result.transactions]
        assert dates == sorted(dates)

    def test_column_mapping_recorded(self, parser, sample_csv_content):
        result = parser.parse_content(sample_csv_content)

        assert result.metadata["column_mapping"] == {
            "date": "Transaction Date",
            "description": "Description",
            "amount": "Amount",
        }

    def test_missing_columns_raise(self, parser):
        content = b"Date,Reference\n10/08/2025,ABC\n"

        with pytest.raises(ParseError) as exc_info:
            parser.parse_content(content)

        assert set(exc_info.value.details["missing_columns"]) == {"description", "amount"}
        assert "Missing required columns" in exc_info.value.message

    def test_semicolon_delimiter(self, parser):
        content = b"Date;Narration;Debit\n01-08-2025;SHELL PETROL;1500.00\n"
        result = parser.parse_content(content)

        assert result.transaction_count == 1
        assert result.transactions[0].description == "SHELL PETROL"
        assert result.transactions[0].amount == Decimal("1500.00")

    def test_negative_and_parenthesized_amounts(self, parser):
        content = (
            b"Date,Description,Amount\n"
            b"01/08/2025,REFUND ABC,-250.00\n"
            b"02/08/2025,CHARGE XYZ,(75.50)\n"
        )

        result = parser.parse_content(content)

        assert [t.amount for t in result.transactions] == [Decimal("250.00"), Decimal("75.50")]

    def test_empty_file_has_no_header(self, parser):
        with pytest.raises(ParseError):
            parser.parse_content(b"\n\n")

    def test_parse_is_idempotent(self, parser, sample_csv_content):
        first = parser.parse_content(sample_csv_content)
        second = parser.parse_content(sample_csv_content)

        assert first.transactions == second.transactions
        assert [t.id for t in first.transactions] == [t.id for t in second.transactions]

    def test_id_survives_dict_round_trip(self, parser):
        result = parser.parse_content(b"Date,Description,Amount\n10/08/2025,Zomato Order,540\n")
        parsed = result.transactions[0]

        restored = Transaction.from_dict(parsed.to_dict())

        assert restored.amount == Decimal("540.0")
        assert restored.id == parsed.id

    def test_id_ignores_amount_exponent(self):
        whole = Transaction(date=date(2025, 8, 10), description="Zomato Order", amount=Decimal("540"))
        padded = Transaction(date=date(2025, 8, 10), description="Zomato Order", amount=Decimal("540.00"))

        assert whole.id == padded.id


class TestExcelStatementParser:
    """Tests for spreadsheet parsing."""

    def test_parses_first_sheet(self, tmp_path):
        content = workbook_bytes([
            ["Txn Date", "Particulars", "Amount"],
            [date(2025, 8, 1), "BIGBASKET ORDER", 1800],
            ["05/08/2025", "IRCTC TICKET", "₹ 950.00"],
            [None, None, None],
        ])
        path = tmp_path / "statement.xlsx"
        path.write_bytes(content)

        result = StatementParser().parse_file(path, categorize=False)

        assert result.file_type == "xlsx"
        assert result.transaction_count == 2
        assert result.transactions[0].date == date(2025, 8, 1)
        assert result.transactions[1].amount == Decimal("950.00")

    def test_header_only_sheet_raises(self):
        content = workbook_bytes([["Date", "Description", "Amount"]])

        with pytest.raises(ParseError):
            ExcelStatementParser().parse_content(content)

    def test_not_a_workbook(self):
        with pytest.raises(ParseError):
            ExcelStatementParser().parse_content(b"PK\x03\x04not really a zip")


class TestPDFStatementParser:
    """Tests for PDF text scanning."""

    @pytest.fixture
    def statement_text(self):
        return "\n".join([
            "HDFC Bank Credit Card Statement",
            "Date Description Amount",
            "05/08/2025 SWIGGY ORDER 450.00",
            "06-08-2025 UBER TRIP BANGALORE 1,230.50 Dr",
            "2025-08-07 NETFLIX.COM 649.00 Cr",
            "31/02/2025 IMPOSSIBLE DATE 100.00",
            "short",
        ])

    def test_extracts_matching_lines(self, statement_text):
        parser = PDFStatementParser()
        result = ParseResult(file_type="pdf")

        parser.extract_transactions_from_text(statement_text, result)

        assert len(result.transactions) == 3
        assert result.transactions[1].amount == Decimal("1230.50")
        assert result.transactions[2].date == date(2025, 8, 7)
        assert result.skipped_rows == 1

    def test_parse_content_uses_pdfplumber(self, statement_text):
        page = Mock()
        page.extract_text.return_value = statement_text
        pdf = MagicMock()
        pdf.__enter__.return_value.pages = [page]

        with patch("statement_processor.parsers.pdf_parser.pdfplumber") as mock_plumber:
            mock_plumber.open.return_value = pdf
            result = PDFStatementParser().parse_content(b"%PDF-1.4 fake")

        assert result.transaction_count == 3
        assert result.transactions[0].description == "SWIGGY ORDER"

    def test_unreadable_pdf_raises(self):
        with patch("statement_processor.parsers.pdf_parser.pdfplumber") as mock_plumber:
            mock_plumber.open.side_effect = ValueError("bad xref")

            with pytest.raises(ParseError):
                PDFStatementParser().parse_content(b"%PDF-broken")


class TestStatementParser:
    """Tests for dispatch, summary and status tracking."""

    @pytest.fixture
    def parser(self):
        return StatementParser(status_store=ProcessingStatusStore())

    def test_detect_file_type(self, parser):
        assert parser.detect_file_type("a.PDF", b"") == "pdf"
        assert parser.detect_file_type("a.csv", b"") == "csv"
        assert parser.detect_file_type("a.xlsx", b"") == "xlsx"
        assert parser.detect_file_type(None, b"%PDF-1.7") == "pdf"
        assert parser.detect_file_type(None, b"PK\x03\x04...") == "xlsx"
        assert parser.detect_file_type("upload", b"x", file_kind="excel") == "xlsx"

    def test_unsupported_type(self, parser):
        with pytest.raises(ParseError):
            parser.detect_file_type("statement.docx", b"data")

    def test_empty_content(self, parser):
        with pytest.raises(ParseError):
            parser.parse(b"", "statement.csv")

    def test_status_completed(self, parser, sample_csv_content):
        parser.parse(sample_csv_content, "s.csv", user_id="u1", file_id="f1")

        status = parser.get_status("u1", "f1")
        assert status.status == "completed"
        assert status.progress == 100
        assert parser.get_result("u1", "f1").transaction_count == 3
        assert parser.get_status("u2", "f1") is None

    def test_status_error(self, parser):
        with pytest.raises(ParseError):
            parser.parse(b"Date,Foo\n1,2\n", "s.csv", user_id="u1", file_id="bad")

        status = parser.get_status("u1", "bad")
        assert status.status == "error"
        assert "Missing required columns" in status.error

    def test_list_and_delete(self, parser, sample_csv_content):
        parser.parse(sample_csv_content, "s.csv", user_id="u1", file_id="f1")

        assert list(parser.list_statements("u1")) == ["f1"]
        assert parser.delete_statement("u1", "f1") is True
        assert parser.get_status("u1", "f1") is None
        assert parser.delete_statement("u1", "f1") is False

    def test_metadata(self, parser, sample_csv_content):
        result = parser.parse(sample_csv_content, "s.csv", file_id="f1")

        assert result.metadata["file_id"] == "f1"
        assert result.metadata["file_type"] == "csv"
        assert result.metadata["total_transactions"] == 3
        assert result.metadata["skipped_rows"] == 1
        assert result.metadata["date_range"] == {"from": "2025-08-02", "to": "2025-08-09"}
        assert result.metadata["processing_time_ms"] >= 0

    def test_categorization_optional(self, config_dir, sample_csv_content):
        parser = StatementParser(categorizer=TransactionCategorizer(config_dir))

        uncategorized = parser.parse(sample_csv_content, "s.csv", categorize=False)
        categorized = parser.parse(sample_csv_content, "s.csv")

        assert {t.category for t in uncategorized.transactions} == {"others"}
        assert "categories" not in uncategorized.summary
        assert "categorization" in categorized.metadata
        assert {t.category for t in categorized.transactions} >= {"food", "fuel"}

    def test_missing_file(self, parser, tmp_path):
        with pytest.raises(ParseError):
            parser.parse_file(tmp_path / "nope.csv")


class TestBuildSummary:
    """Tests for statement summaries."""

    def test_empty(self):
        summary = build_summary([])

        assert summary["total_transactions"] == 0
        assert summary["top_merchants"] == []

    def test_totals_and_categories(self, sample_transactions):
        summary = build_summary(sample_transactions, top_n=2)

        assert summary["total_transactions"] == 6
        assert summary["total_amount"] == 30350.0
        assert summary["date_range"] == {"from": "2025-07-03", "to": "2025-08-09"}
        assert summary["categories"]["travel"]["amount"] == 12000.0
        assert [m["merchant"] for m in summary["top_merchants"]] == [
            "MAKEMYTRIP FLIGHT",
            "AMAZON ONLINE",
        ]
