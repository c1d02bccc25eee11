"""Import preview: parse mapped records and match them against the ledger."""

import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Sequence

from ledgerimport.database.base import Database
from ledgerimport.domain.entities import (
    Category,
    FieldMapping,
    ImportSettings,
    MatchResult,
    ParsedTransaction,
    PreviewTransaction,
    RawRecord,
)
from ledgerimport.domain.errors import FieldParseError, NotFoundError, missing_amount, unparseable_date
from ledgerimport.domain.field_mapping import apply_field_mapping
from ledgerimport.domain.selection import initial_selection, next_selection
from ledgerimport.utils.amount_parser import parse_amount_fields
from ledgerimport.utils.date_parser import DEFAULT_DATE_FORMAT, detect_date_format, parse_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewResult:
    """Preview rows in file order.

    ``error`` is set when processing halted; ``transactions`` then holds the
    rows before the failing record.
    """

    transactions: tuple[PreviewTransaction, ...] = ()
    error: Optional[FieldParseError] = None

    @property
    def incoming(self) -> tuple[PreviewTransaction, ...]:
        """Rows from the file, without the matched-existing rows."""
        return tuple(t for t in self.transactions if not t.is_matched_existing)


def initial_date_format(
    records: Sequence[RawRecord], mapping: Optional[FieldMapping], hint: Optional[str] = None
) -> str:
    """Detect the date format of a file from its mapped date values."""
    if not records or mapping is None or mapping.date is None:
        return hint or DEFAULT_DATE_FORMAT
    samples = [record.get(mapping.date) for record in records]
    return detect_date_format(samples, fallback=hint)


def category_lookup(categories: Sequence[Category]) -> dict[str, int]:
    """Map category names to IDs for exact-name resolution."""
    return {category.name: category.id for category in categories}


def parse_record(
    transient_id: int,
    record: RawRecord,
    mapping: FieldMapping,
    settings: ImportSettings,
    date_format: Optional[str],
    resolved: bool,
    categories: Mapping[str, int],
    account_id: Optional[int] = None,
) -> ParsedTransaction:
    """Resolve one record into a ParsedTransaction.

    Args:
        transient_id: Row number within the import session
        record: Raw record from the adapter
        mapping: Field mapping to read the record with
        settings: Active import settings (amount encoding, flip, multiplier)
        date_format: Date format token for unresolved files
        resolved: Dates and amounts are already typed (bank statements)
        categories: Category name to ID lookup
        account_id: Account to attribute the row to, if known

    Returns:
        ParsedTransaction

    Raises:
        FieldParseError: If the date or the amount cannot be resolved
    """
    values = apply_field_mapping(record, mapping)

    parsed_date = parse_date(values["date"], date_format)
    if parsed_date is None:
        raise FieldParseError(
            unparseable_date(values["date"]), transient_id=transient_id, raw_value=values["date"]
        )

    amount = parse_amount_fields(
        values,
        split_mode=mapping.split_mode and not resolved,
        in_out_mode=settings.in_out_mode and not resolved,
        out_value=settings.out_value,
        flip_amount=settings.flip_amount,
        multiplier=settings.multiplier,
        resolved=resolved,
    )
    if amount is None:
        raise FieldParseError(
            missing_amount(values["date"]), transient_id=transient_id, raw_value=values["amount"]
        )

    category = values["category"]
    return ParsedTransaction(
        transient_id=transient_id,
        date=parsed_date,
        amount=amount,
        payee=values["payee"],
        notes=values["notes"] if settings.import_notes else None,
        category_id=categories.get(category) if isinstance(category, str) else None,
        imported_payee=values["imported_payee"],
        imported_id=record.imported_id,
        extracted_account_number=record.extracted_account_number,
        account_id=account_id,
    )


def _preview_row(record: RawRecord, parsed: ParsedTransaction) -> PreviewTransaction:
    return PreviewTransaction(
        transient_id=parsed.transient_id,
        raw=record,
        date=parsed.date,
        amount=parsed.amount,
        payee=parsed.payee,
        notes=parsed.notes,
        category_id=parsed.category_id,
        imported_payee=parsed.imported_payee,
        imported_id=parsed.imported_id,
        extracted_account_number=parsed.extracted_account_number,
        account_id=parsed.account_id,
        selection=initial_selection(matched=False, ignored=False),
    )


def _matched_existing_row(row: PreviewTransaction, match: MatchResult) -> PreviewTransaction:
    existing = match.existing
    return PreviewTransaction(
        transient_id=row.transient_id,
        raw=RawRecord(),
        date=existing.date,
        amount=existing.amount,
        payee=existing.payee_name,
        notes=existing.notes,
        category_id=existing.category_id,
        imported_payee=existing.imported_payee,
        imported_id=existing.imported_id,
        account_id=existing.account_id,
        existing_match_id=existing.id,
        ignored=row.ignored,
        selection=row.selection,
        is_matched_existing=True,
    )


def toggle_selection(
    transactions: Sequence[PreviewTransaction], transient_id: int
) -> tuple[PreviewTransaction, ...]:
    """Advance the selection of one row (and its matched-existing row).

    Raises:
        NotFoundError: If no row has the transient ID
    """
    target = next(
        (t for t in transactions if t.transient_id == transient_id and not t.is_matched_existing),
        None,
    )
    if target is None:
        raise NotFoundError(f"Row {transient_id} not found in preview")
    selection = next_selection(target.selection, matched=target.existing)
    return tuple(
        replace(t, selection=selection) if t.transient_id == transient_id else t
        for t in transactions
    )


class PreviewService:
    """Builds the import preview for a set of parsed records."""

    def __init__(self, db: Database):
        """Initialize preview service.

        Args:
            db: Database instance
        """
        self.db = db

    def build_preview(
        self,
        records: Sequence[RawRecord],
        mapping: FieldMapping,
        settings: ImportSettings,
        *,
        account_id: Optional[int] = None,
        date_format: Optional[str] = None,
        resolved: bool = False,
        categories: Optional[Sequence[Category]] = None,
        account_assignments: Optional[Mapping[int, int]] = None,
    ) -> PreviewResult:
        """Parse records and match them against existing transactions.

        Processing stops at the first record whose date or amount cannot be
        resolved. The rows before it are still matched and returned. Calling
        this again with the same input gives an equal result; the ledger is
        only read.

        Args:
            records: Raw records; their index is the transient ID
            mapping: Field mapping to read the records with
            settings: Active import settings
            account_id: Target account, or None for an aggregate import
            date_format: Date format for unresolved files
            resolved: Dates and amounts are already typed
            categories: Categories for exact-name resolution (defaults to the ledger's)
            account_assignments: Accounts chosen for aggregate rows, by transient ID

        Returns:
            PreviewResult
        """
        if categories is None:
            categories = self.db.list_categories()
        lookup = category_lookup(categories)
        assignments = account_assignments or {}

        rows: list[PreviewTransaction] = []
        candidates: list[ParsedTransaction] = []
        error = None
        for transient_id, record in enumerate(records):
            row_account = account_id if account_id is not None else assignments.get(transient_id)
            try:
                parsed = parse_record(
                    transient_id, record, mapping, settings, date_format, resolved, lookup, row_account
                )
            except FieldParseError as e:
                logger.warning("Preview halted at row %d: %s", transient_id, e)
                error = e
                break
            candidates.append(parsed)
            rows.append(_preview_row(record, parsed))

        matches = {m.transient_id: m for m in self.db.find_matching_transactions(account_id, candidates)}

        transactions: list[PreviewTransaction] = []
        for row in rows:
            match = matches.get(row.transient_id)
            if match is None:
                transactions.append(row)
                continue
            row = replace(
                row,
                existing_match_id=match.existing.id,
                ignored=match.ignored,
                selection=initial_selection(matched=True, ignored=match.ignored),
            )
            transactions.append(row)
            transactions.append(_matched_existing_row(row, match))

        logger.info(
            "Preview: %d rows, %d matched, %d ignored",
            len(rows), len(matches), sum(1 for m in matches.values() if m.ignored),
        )
        return PreviewResult(transactions=tuple(transactions), error=error)
