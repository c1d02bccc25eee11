"""Import session: the state of one import and the events that change it.

``ImportState`` is immutable and only changes through ``transition``. Each
parsed file gets a new generation number; results computed for an older
generation are dropped when they arrive.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Union

from ledgerimport.database.base import Database
from ledgerimport.domain.account_conflicts import AccountConflictService, ConflictScan, pending_conflicts
from ledgerimport.domain.entities import AccountConflict, FieldMapping, ImportSettings, PreviewTransaction
from ledgerimport.domain.errors import (
    CommitInProgressError,
    NotFoundError,
    ValidationError,
)
from ledgerimport.domain.field_mapping import infer_field_mapping, toggle_split_mode
from ledgerimport.domain.import_commit import CommitResult, ImportCommitService
from ledgerimport.domain.import_settings import ImportSettingsService
from ledgerimport.domain.preview import PreviewResult, PreviewService, initial_date_format, toggle_selection
from ledgerimport.formats import ParseOptions, ParsedFile, get_adapter, get_file_type, parse_file
from ledgerimport.utils.amount_parser import is_valid_multiplier

logger = logging.getLogger(__name__)

# Settings read by the adapters; changing one means parsing the file again.
PARSE_SETTINGS = frozenset(
    {"delimiter", "has_header_row", "skip_lines", "import_notes", "fallback_missing_payee", "qif_split_mode"}
)


@dataclass(frozen=True)
class ImportState:
    """Everything known about one import."""

    generation: int = 0
    filepath: Optional[str] = None
    file_type: Optional[str] = None
    account_id: Optional[int] = None
    parsed_file: Optional[ParsedFile] = None
    settings: ImportSettings = field(default_factory=ImportSettings)
    mapping: Optional[FieldMapping] = None
    date_format: Optional[str] = None
    transactions: tuple[PreviewTransaction, ...] = ()
    preview_error: Optional[Exception] = None
    conflicts: dict[int, AccountConflict] = field(default_factory=dict)
    suggestions: dict[int, int] = field(default_factory=dict)
    assignments: dict[int, int] = field(default_factory=dict)
    result: Optional[CommitResult] = None

    @property
    def aggregate(self) -> bool:
        return self.account_id is None

    @property
    def resolved(self) -> bool:
        return self.parsed_file is not None and self.parsed_file.resolved_values


@dataclass(frozen=True)
class FileParsed:
    generation: int
    filepath: str
    file_type: str
    account_id: Optional[int]
    parsed_file: ParsedFile
    settings: ImportSettings
    mapping: FieldMapping
    date_format: Optional[str]


@dataclass(frozen=True)
class PreviewComputed:
    generation: int
    result: PreviewResult


@dataclass(frozen=True)
class ConflictsComputed:
    generation: int
    scan: ConflictScan


@dataclass(frozen=True)
class SettingsChanged:
    settings: ImportSettings
    mapping: FieldMapping
    date_format: Optional[str]


@dataclass(frozen=True)
class SelectionToggled:
    transient_id: int


@dataclass(frozen=True)
class AccountAssigned:
    transient_id: int
    account_id: int


@dataclass(frozen=True)
class Committed:
    generation: int
    result: CommitResult


Event = Union[
    FileParsed,
    PreviewComputed,
    ConflictsComputed,
    SettingsChanged,
    SelectionToggled,
    AccountAssigned,
    Committed,
]


def _assign(state: ImportState, transient_id: int, account_id: int) -> ImportState:
    if not any(t.transient_id == transient_id for t in state.transactions):
        raise NotFoundError(f"Row {transient_id} not found in preview")
    conflict = state.conflicts.get(transient_id)
    if conflict is not None and account_id not in conflict.candidate_account_ids:
        raise ValidationError(f"Account {account_id} is not a candidate for row {transient_id}")
    transactions = tuple(
        replace(t, account_id=account_id)
        if t.transient_id == transient_id and not t.is_matched_existing
        else t
        for t in state.transactions
    )
    return replace(
        state,
        transactions=transactions,
        conflicts={t: c for t, c in state.conflicts.items() if t != transient_id},
        suggestions={t: a for t, a in state.suggestions.items() if t != transient_id},
        assignments={**state.assignments, transient_id: account_id},
    )


def transition(state: ImportState, event: Event) -> ImportState:
    """Return the state after an event.

    Events carrying a generation older than the state's are ignored.
    """
    if isinstance(event, FileParsed):
        if event.generation <= state.generation:
            return state
        return ImportState(
            generation=event.generation,
            filepath=event.filepath,
            file_type=event.file_type,
            account_id=event.account_id,
            parsed_file=event.parsed_file,
            settings=event.settings,
            mapping=event.mapping,
            date_format=event.date_format,
        )

    if isinstance(event, (PreviewComputed, ConflictsComputed, Committed)):
        if event.generation != state.generation:
            logger.debug("Dropping %s for stale generation %d", type(event).__name__, event.generation)
            return state

    if isinstance(event, PreviewComputed):
        return replace(
            state,
            transactions=event.result.transactions,
            preview_error=event.result.error,
            conflicts={},
            suggestions={},
        )
    if isinstance(event, ConflictsComputed):
        return replace(state, conflicts=dict(event.scan.conflicts), suggestions=dict(event.scan.suggestions))
    if isinstance(event, SettingsChanged):
        return replace(state, settings=event.settings, mapping=event.mapping, date_format=event.date_format)
    if isinstance(event, SelectionToggled):
        return replace(state, transactions=toggle_selection(state.transactions, event.transient_id))
    if isinstance(event, AccountAssigned):
        return _assign(state, event.transient_id, event.account_id)
    if isinstance(event, Committed):
        return replace(state, result=event.result)
    raise TypeError(f"Unknown event {event!r}")


class ImportSession:
    """Runs one import: parse, preview, attribute accounts, commit.

    Only one commit may run at a time per session.
    """

    def __init__(self, db: Database):
        """Initialize import session.

        Args:
            db: Database instance
        """
        self.db = db
        self.settings_service = ImportSettingsService(db)
        self.preview_service = PreviewService(db)
        self.conflict_service = AccountConflictService(db)
        self.commit_service = ImportCommitService(db, self.settings_service)
        self.state = ImportState()
        self._commit_lock = threading.Lock()

    def dispatch(self, event: Event) -> ImportState:
        self.state = transition(self.state, event)
        return self.state

    def open(
        self,
        filepath: str,
        account_id: Optional[int] = None,
        overrides: Optional[dict[str, Any]] = None,
    ) -> ImportState:
        """Parse a file and build its preview.

        Args:
            filepath: Statement file to import
            account_id: Target account, or None to import into all accounts
            overrides: ImportSettings fields replacing the stored values

        Returns:
            New ImportState

        Raises:
            FileNotFoundError: If the file does not exist
            FormatError: If the file cannot be parsed
            ValidationError: If the multiplier is malformed
        """
        file_type = get_file_type(filepath)
        settings = self.settings_service.load(account_id, file_type, filepath)
        if overrides:
            settings = replace(settings, **overrides)
        return self._parse(filepath, file_type, account_id, settings)

    def _parse(
        self, filepath: str, file_type: str, account_id: Optional[int], settings: ImportSettings
    ) -> ImportState:
        if not is_valid_multiplier(settings.multiplier):
            raise ValidationError(f"Invalid multiplier '{settings.multiplier}'")

        generation = self.state.generation + 1
        parsed = parse_file(filepath, ParseOptions.from_settings(settings))
        logger.info("Parsed %s as %s: %d records", filepath, file_type, len(parsed.records))

        mapping = get_adapter(file_type).default_mapping()
        if mapping is None:
            mapping = settings.field_mapping or infer_field_mapping(parsed.records)
            settings = replace(settings, field_mapping=mapping)

        date_format = None
        if not parsed.resolved_values:
            date_format = settings.date_format or initial_date_format(
                parsed.records, mapping, parsed.date_format_hint
            )
            settings = replace(settings, date_format=date_format)

        self.dispatch(
            FileParsed(
                generation=generation,
                filepath=filepath,
                file_type=file_type,
                account_id=account_id,
                parsed_file=parsed,
                settings=settings,
                mapping=mapping,
                date_format=date_format,
            )
        )
        return self.refresh()

    def refresh(self) -> ImportState:
        """Rebuild the preview and, for all-accounts imports, the conflicts."""
        state = self.state
        if state.parsed_file is None:
            raise ValidationError("No file has been opened")
        generation = state.generation

        result = self.preview_service.build_preview(
            state.parsed_file.records,
            state.mapping,
            state.settings,
            account_id=state.account_id,
            date_format=state.date_format,
            resolved=state.resolved,
            account_assignments=state.assignments,
        )
        self.dispatch(PreviewComputed(generation=generation, result=result))

        if state.aggregate:
            scan = self.conflict_service.detect_conflicts(self.state.transactions)
            self.dispatch(ConflictsComputed(generation=generation, scan=scan))
        return self.state

    def update_settings(self, **changes: Any) -> ImportState:
        """Change import settings and recompute what depends on them.

        Settings used by the adapters cause the file to be parsed again.
        """
        state = self.state
        if state.filepath is None:
            raise ValidationError("No file has been opened")
        settings = replace(state.settings, **changes)
        if PARSE_SETTINGS & changes.keys():
            return self._parse(state.filepath, state.file_type, state.account_id, settings)

        if not is_valid_multiplier(settings.multiplier):
            raise ValidationError(f"Invalid multiplier '{settings.multiplier}'")
        mapping = settings.field_mapping if "field_mapping" in changes else state.mapping
        self.dispatch(SettingsChanged(settings=settings, mapping=mapping, date_format=settings.date_format))
        return self.refresh()

    def set_split_mode(self, enabled: bool) -> ImportState:
        """Switch the mapping between one amount column and inflow/outflow."""
        state = self.state
        if state.parsed_file is None or state.mapping is None:
            raise ValidationError("No file has been opened")
        mapping = toggle_split_mode(state.mapping, state.parsed_file.records, enabled)
        return self.update_settings(field_mapping=mapping)

    def toggle(self, transient_id: int) -> ImportState:
        """Toggle the selection of a row.

        In an all-accounts import the account lookup runs again, since only
        selected rows take part in it. Rows already given an account keep it.
        """
        state = self.dispatch(SelectionToggled(transient_id))
        if state.aggregate:
            scan = self.conflict_service.detect_conflicts(state.transactions)
            state = self.dispatch(ConflictsComputed(generation=state.generation, scan=scan))
        return state

    def resolve_conflict(self, transient_id: int, account_id: int) -> ImportState:
        """Choose the account of a row that matched several accounts.

        Raises:
            NotFoundError: If the row has no open conflict
            ValidationError: If the account is not a candidate
        """
        if transient_id not in self.state.conflicts:
            raise NotFoundError(f"No account conflict for row {transient_id}")
        return self.dispatch(AccountAssigned(transient_id, account_id))

    def assign_account(self, transient_id: int, account_id: int) -> ImportState:
        """Attribute a row to an account by hand."""
        if self.db.get_account(account_id) is None:
            raise NotFoundError(f"Account {account_id} not found")
        return self.dispatch(AccountAssigned(transient_id, account_id))

    def accept_suggestions(self) -> ImportState:
        """Assign every row with a single candidate account to it."""
        for transient_id, account_id in sorted(self.state.suggestions.items()):
            self.dispatch(AccountAssigned(transient_id, account_id))
        return self.state

    @property
    def pending_conflicts(self) -> list[int]:
        return pending_conflicts(self.state.conflicts)

    def commit(self) -> CommitResult:
        """Import the current preview.

        Raises:
            CommitInProgressError: If another commit of this session is running
            ConflictUnresolvedError: If an account conflict is still open
            FieldParseError: If the preview halted at an unparseable row
            CommitError: If the ledger store rejects the batch
        """
        if not self._commit_lock.acquire(blocking=False):
            raise CommitInProgressError("An import is already being committed for this session")
        try:
            state = self.state
            if state.parsed_file is None:
                raise ValidationError("No file has been opened")
            if state.preview_error is not None:
                raise state.preview_error
            result = self.commit_service.commit(
                state.transactions,
                state.mapping,
                state.settings,
                state.file_type,
                account_id=state.account_id,
                date_format=state.date_format,
                resolved=state.resolved,
                conflicts=state.conflicts,
            )
            self.dispatch(Committed(generation=state.generation, result=result))
            return result
        finally:
            self._commit_lock.release()
