"""Domain model entities for ledgerimport.

These are pure data classes. Ledger-side entities (accounts, payees,
transactions) are independent of the database schema; import-side entities
(raw records, preview rows, conflicts, settings) live only as long as one
import session.

All monetary amounts are integers in minor units (cents).
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, date
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class Account:
    """Ledger account domain entity.

    ``external_id`` holds the account number reported by the bank, used to
    attribute imported statements to the right account.
    """

    id: int
    name: str
    external_id: Optional[str]
    offbudget: bool
    closed: bool
    created_at: datetime


@dataclass(frozen=True)
class Payee:
    """Payee domain entity. Transfer payees point at an account."""

    id: int
    name: str
    transfer_account_id: Optional[int] = None


@dataclass(frozen=True)
class Category:
    """Category domain entity."""

    id: int
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Ledger transaction domain entity."""

    id: int
    account_id: int
    date: date
    amount: int
    payee_id: Optional[int]
    payee_name: Optional[str]
    imported_payee: Optional[str]
    notes: Optional[str]
    category_id: Optional[int]
    cleared: bool
    reconciled: bool
    imported_id: Optional[str]
    imported_at: datetime


@dataclass(frozen=True)
class Rule:
    """Automation rule domain entity."""

    id: int
    name: str
    conditions: list[dict[str, Any]]
    actions: list[dict[str, Any]]


@dataclass(frozen=True)
class RawRecord:
    """One transaction line as emitted by a format adapter.

    ``fields`` keeps the adapter's field order. File-level hints are copied
    onto every record of the file.
    """

    fields: dict[str, Any] = field(default_factory=dict)
    extracted_account_number: Optional[str] = None
    extracted_account_type: Optional[str] = None
    extracted_bank_id: Optional[str] = None
    imported_id: Optional[str] = None

    def get(self, name: Optional[str], default: Any = None) -> Any:
        if name is None:
            return default
        return self.fields.get(name, default)


# Canonical slots a raw field can be mapped to.
MAPPING_SLOTS = ("date", "amount", "payee", "notes", "category", "in_out", "inflow", "outflow")

# Spelling of the slots in the persisted csv-mappings JSON.
_STORED_SLOT_NAMES = {"in_out": "inOut"}


@dataclass(frozen=True)
class FieldMapping:
    """Mapping from canonical transaction fields to raw field names.

    ``amount`` and the ``inflow``/``outflow`` pair are mutually exclusive.
    """

    date: Optional[str] = None
    amount: Optional[str] = None
    payee: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    in_out: Optional[str] = None
    inflow: Optional[str] = None
    outflow: Optional[str] = None

    def __post_init__(self):
        if self.amount is not None and (self.inflow is not None or self.outflow is not None):
            raise ValueError("A mapping cannot use both 'amount' and 'inflow'/'outflow'")

    @property
    def split_mode(self) -> bool:
        return self.inflow is not None or self.outflow is not None

    def claimed_fields(self) -> set[str]:
        return {getattr(self, slot) for slot in MAPPING_SLOTS if getattr(self, slot) is not None}

    def to_dict(self) -> dict[str, Optional[str]]:
        return {_STORED_SLOT_NAMES.get(slot, slot): getattr(self, slot) for slot in MAPPING_SLOTS}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldMapping":
        values = {}
        for slot in MAPPING_SLOTS:
            value = data.get(_STORED_SLOT_NAMES.get(slot, slot), data.get(slot))
            values[slot] = value if value not in ("", None) else None
        if values["inflow"] is not None or values["outflow"] is not None:
            values["amount"] = None
        return cls(**values)

    @classmethod
    def from_json(cls, text: str) -> "FieldMapping":
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class ParsedTransaction:
    """A raw record after mapping and date/amount resolution.

    ``transient_id`` is assigned at parse time and only stable within one
    import session. It joins preview rows with commit rows and match results.
    """

    transient_id: int
    date: date
    amount: int
    payee: Optional[str] = None
    notes: Optional[str] = None
    category_id: Optional[int] = None
    imported_payee: Optional[str] = None
    imported_id: Optional[str] = None
    extracted_account_number: Optional[str] = None
    account_id: Optional[int] = None


class SelectionState(Enum):
    """Selection of a preview row.

    Unmatched rows only use SELECTED_NO_MERGE and DESELECTED.
    """

    MERGE_SELECTED = "merge_selected"
    SELECTED_NO_MERGE = "selected_no_merge"
    DESELECTED = "deselected"


@dataclass(frozen=True)
class PreviewTransaction:
    """A row of the import preview with its reconciliation state."""

    transient_id: int
    raw: RawRecord
    date: Optional[date] = None
    amount: Optional[int] = None
    payee: Optional[str] = None
    notes: Optional[str] = None
    category_id: Optional[int] = None
    imported_payee: Optional[str] = None
    imported_id: Optional[str] = None
    extracted_account_number: Optional[str] = None
    account_id: Optional[int] = None
    existing_match_id: Optional[int] = None
    ignored: bool = False
    selection: SelectionState = SelectionState.SELECTED_NO_MERGE
    is_matched_existing: bool = False

    @property
    def existing(self) -> bool:
        return self.existing_match_id is not None

    @property
    def selected(self) -> bool:
        return self.selection is not SelectionState.DESELECTED

    @property
    def selected_merge(self) -> bool:
        return self.existing and self.selection is SelectionState.MERGE_SELECTED


@dataclass(frozen=True)
class MatchResult:
    """Existing ledger transaction found for an incoming candidate."""

    transient_id: int
    existing: Transaction
    ignored: bool


@dataclass(frozen=True)
class AccountConflict:
    """Incoming row that matched more than one account."""

    transient_id: int
    candidate_account_ids: frozenset[int]
    resolved_account_id: Optional[int] = None


@dataclass(frozen=True)
class NewTransaction:
    """Transaction to insert through the ledger batch update."""

    account_id: int
    date: date
    amount: int
    payee_name: Optional[str] = None
    imported_payee: Optional[str] = None
    notes: Optional[str] = None
    category_id: Optional[int] = None
    imported_id: Optional[str] = None
    cleared: bool = True
    force_add: bool = False


@dataclass(frozen=True)
class TransactionUpdate:
    """Merge of imported data into an existing ledger transaction."""

    id: int
    payee_name: Optional[str] = None
    imported_payee: Optional[str] = None
    notes: Optional[str] = None
    category_id: Optional[int] = None
    imported_id: Optional[str] = None
    cleared: bool = True


@dataclass(frozen=True)
class BatchUpdateResult:
    """IDs touched by a ledger batch update."""

    added: tuple[int, ...] = ()
    updated: tuple[int, ...] = ()
    deleted: tuple[int, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.deleted)


@dataclass(frozen=True)
class ImportSettings:
    """Per-account, per-format import preferences.

    ``field_mapping`` is only used for delimited files. ``multiplier`` is an
    empty string when disabled.
    """

    delimiter: str = ","
    has_header_row: bool = True
    skip_lines: int = 0
    date_format: Optional[str] = None
    flip_amount: bool = False
    field_mapping: Optional[FieldMapping] = None
    in_out_mode: bool = False
    out_value: str = ""
    import_notes: bool = True
    fallback_missing_payee: bool = True
    multiplier: str = ""
    reconcile: bool = True
    clear_on_import: bool = True
    qif_split_mode: str = "aggregate"

    @property
    def split_mode(self) -> bool:
        return self.field_mapping is not None and self.field_mapping.split_mode
