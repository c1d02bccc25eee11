"""Adapter interface shared by all file formats."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ledgerimport.domain.entities import FieldMapping, ImportSettings, RawRecord


@dataclass(frozen=True)
class ParseOptions:
    """Settings that require the file to be parsed again when changed."""

    delimiter: str = ","
    has_header_row: bool = True
    skip_lines: int = 0
    import_notes: bool = True
    fallback_missing_payee: bool = True
    qif_split_mode: str = "aggregate"
    date_format: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: ImportSettings) -> "ParseOptions":
        return cls(
            delimiter=settings.delimiter,
            has_header_row=settings.has_header_row,
            skip_lines=settings.skip_lines,
            import_notes=settings.import_notes,
            fallback_missing_payee=settings.fallback_missing_payee,
            qif_split_mode=settings.qif_split_mode,
            date_format=settings.date_format,
        )


@dataclass(frozen=True)
class ParsedFile:
    """Uniform result of every adapter.

    ``resolved_values`` is True when dates and amounts are already typed
    (bank statements); no date format, sign flip or in/out indicator is
    applied to such files.
    """

    file_type: str
    records: tuple[RawRecord, ...] = ()
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    account_type: Optional[str] = None
    bank_id: Optional[str] = None
    date_format_hint: Optional[str] = None
    resolved_values: bool = False


# Field layout produced by adapters that do not need a user mapping.
STANDARD_MAPPING = FieldMapping(
    date="date",
    amount="amount",
    payee="payee",
    notes="notes",
    category="category",
)


class FormatAdapter(ABC):
    """Parses one file format into RawRecords."""

    file_type: str = ""
    resolved_values: bool = False

    @abstractmethod
    def parse(self, text: str, options: ParseOptions) -> ParsedFile:
        """Parse file contents.

        Raises:
            FormatError: If the contents do not follow the format
        """
        pass

    def default_mapping(self) -> Optional[FieldMapping]:
        """Mapping used when the user does not provide one."""
        return STANDARD_MAPPING
