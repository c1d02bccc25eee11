"""Tests for format dispatch and the delimited and bank statement adapters."""

import pytest
from datetime import date
from decimal import Decimal

from ledgerimport.domain.errors import FormatError
from ledgerimport.formats import (
    ParseOptions,
    default_delimiter,
    get_adapter,
    get_file_type,
    is_bank_statement,
    parse_file,
)
from ledgerimport.formats.delimited import DelimitedAdapter
from ledgerimport.formats.ofx import CAMTAdapter, OFXAdapter


@pytest.mark.parametrize(
    "path,expected",
    [
        ("statement.csv", "csv"),
        ("statement.CSV", "csv"),
        ("statement.tsv", "csv"),
        ("export.qif", "qif"),
        ("bank.QFX", "qfx"),
        ("bank.ofx", "ofx"),
        ("camt.xml", "xml"),
        ("download", "ofx"),
        ("notes.txt", "ofx"),
    ],
)
def test_get_file_type(path, expected):
    """Extensions are case-insensitive; unknown ones are read as OFX."""
    assert get_file_type(path) == expected


def test_bank_statements_are_resolved():
    """Only OFX/QFX/CAMT carry typed values."""
    assert is_bank_statement("ofx")
    assert is_bank_statement("qfx")
    assert is_bank_statement("xml")
    assert not is_bank_statement("csv")
    assert not is_bank_statement("qif")
    assert isinstance(get_adapter("qfx"), OFXAdapter)


def test_default_delimiter():
    """TSV files default to tabs."""
    assert default_delimiter("a.tsv") == "\t"
    assert default_delimiter("a.csv") == ","


def test_parse_file_missing(tmp_path):
    """A missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        parse_file(str(tmp_path / "missing.csv"))


class TestDelimitedAdapter:
    """Tests for CSV/TSV parsing."""

    def test_header_row(self, fixtures_dir):
        """Header names become field names."""
        parsed = parse_file(str(fixtures_dir / "statement.csv"))

        assert parsed.file_type == "csv"
        assert not parsed.resolved_values
        assert len(parsed.records) == 3
        assert list(parsed.records[0].fields) == ["date", "amount", "payee", "notes", "category"]
        assert parsed.records[0].fields["amount"] == "-45.00"

    def test_no_header_and_skip_lines(self):
        """Columns are numbered without a header; leading lines are skipped."""
        text = "Exported 2024-02-01\n\n2024-01-02;-45,00;Grocer\n"
        options = ParseOptions(delimiter=";", has_header_row=False, skip_lines=1)
        parsed = DelimitedAdapter().parse(text, options)

        assert len(parsed.records) == 1
        assert parsed.records[0].fields == {"1": "2024-01-02", "2": "-45,00", "3": "Grocer"}

    def test_byte_order_mark_and_short_rows(self):
        """A BOM is stripped and short rows are padded."""
        text = "\ufeffDate,Amount,Payee\n2024-01-02,-1\n"
        parsed = DelimitedAdapter().parse(text, ParseOptions())
        assert parsed.records[0].fields == {"Date": "2024-01-02", "Amount": "-1", "Payee": ""}

    def test_account_number_column(self):
        """An account number column is exposed on each record."""
        text = "Date,Amount,Account Number\n2024-01-02,-1,111122223333\n"
        parsed = DelimitedAdapter().parse(text, ParseOptions())
        assert parsed.records[0].extracted_account_number == "111122223333"

    def test_empty_file(self):
        """An empty file has no records."""
        assert DelimitedAdapter().parse("", ParseOptions()).records == ()


class TestOFXAdapter:
    """Tests for OFX/QFX parsing."""

    def test_statement(self, fixtures_dir):
        """Transactions and account details are read from SGML OFX."""
        parsed = parse_file(str(fixtures_dir / "statement.ofx"))

        assert parsed.resolved_values
        assert parsed.account_number == "111122223333"
        assert parsed.account_type == "CHECKING"
        assert parsed.bank_id == "021000021"
        first, second = parsed.records
        assert first.fields["date"] == date(2024, 1, 2)
        assert first.fields["amount"] == Decimal("-45.00")
        assert first.fields["payee"] == "Grocer"
        assert first.fields["notes"] == "Card purchase"
        assert first.imported_id == "F-0001"
        assert first.extracted_account_number == "111122223333"
        assert second.fields["payee"] == "Payroll deposit"

    def test_memo_fallback_disabled(self, fixtures_dir):
        """Without the fallback a missing name stays empty."""
        text = (fixtures_dir / "statement.ofx").read_text()
        parsed = OFXAdapter().parse(text, ParseOptions(fallback_missing_payee=False))
        assert parsed.records[1].fields["payee"] is None

    def test_not_ofx(self):
        """Arbitrary text is rejected."""
        with pytest.raises(FormatError):
            OFXAdapter().parse("date,amount\n2024-01-02,1\n", ParseOptions())


class TestCAMTAdapter:
    """Tests for CAMT.053 parsing."""

    def test_statement(self, fixtures_dir):
        """Debit entries are negative and the IBAN is the account number."""
        parsed = parse_file(str(fixtures_dir / "statement_camt.xml"))

        assert parsed.file_type == "xml"
        assert parsed.account_number == "DE89370400440532013000"
        first, second = parsed.records
        assert first.fields["amount"] == Decimal("-45.00")
        assert first.fields["date"] == date(2024, 1, 2)
        assert first.fields["payee"] == "Grocer"
        assert first.fields["notes"] == "Weekly shop"
        assert first.imported_id == "REF-1"
        assert second.fields["amount"] == Decimal("1200.00")
        assert second.fields["payee"] == "Employer"

    def test_not_camt(self):
        """XML without statements is rejected."""
        with pytest.raises(FormatError):
            CAMTAdapter().parse("<Document></Document>", ParseOptions())
