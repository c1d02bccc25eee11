"""Delimited text (CSV/TSV) adapter."""

import csv
import io
import logging
from typing import Optional

from ledgerimport.domain.entities import FieldMapping, RawRecord
from ledgerimport.domain.errors import FormatError
from ledgerimport.formats.base import FormatAdapter, ParseOptions, ParsedFile

logger = logging.getLogger(__name__)

# Column names that carry the bank account number on each row.
_ACCOUNT_NUMBER_COLUMNS = {"account number", "account no", "account no.", "acct number", "iban"}


def _unique_headers(header: list[str]) -> list[str]:
    """Name blank columns by position and de-duplicate repeated names."""
    names = []
    seen: dict[str, int] = {}
    for index, name in enumerate(header, start=1):
        name = name.strip() or str(index)
        if name in seen:
            seen[name] += 1
            name = f"{name} ({seen[name]})"
        else:
            seen[name] = 1
        names.append(name)
    return names


class DelimitedAdapter(FormatAdapter):
    """Adapter for comma/semicolon/pipe/tab separated files.

    Without a header row the columns are named ``1``..``n``.
    """

    file_type = "csv"

    def parse(self, text: str, options: ParseOptions) -> ParsedFile:
        text = text.lstrip("\ufeff")
        lines = text.splitlines()
        if options.skip_lines:
            lines = lines[options.skip_lines:]

        try:
            reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=options.delimiter or ",")
            rows = [row for row in reader if any(cell.strip() for cell in row)]
        except csv.Error as e:
            raise FormatError(f"Could not read delimited file: {e}")

        if not rows:
            return ParsedFile(file_type=self.file_type)

        width = max(len(row) for row in rows)
        if options.has_header_row:
            header = _unique_headers(rows[0] + [""] * (width - len(rows[0])))
            rows = rows[1:]
        else:
            header = [str(i) for i in range(1, width + 1)]

        account_column = self._account_number_column(header)
        records = []
        for row in rows:
            row = row + [""] * (width - len(row))
            fields = {name: value.strip() for name, value in zip(header, row)}
            number = fields.get(account_column) if account_column else None
            records.append(
                RawRecord(fields=fields, extracted_account_number=number or None)
            )

        logger.debug("Read %d delimited rows with %d columns", len(records), width)
        return ParsedFile(file_type=self.file_type, records=tuple(records))

    def default_mapping(self) -> Optional[FieldMapping]:
        # Inferred from the parsed rows instead
        return None

    @staticmethod
    def _account_number_column(header: list[str]) -> Optional[str]:
        for name in header:
            if name.lower() in _ACCOUNT_NUMBER_COLUMNS:
                return name
        return None
