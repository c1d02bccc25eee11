"""Final import step: turn preview rows into one ledger batch."""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ledgerimport.database.base import Database
from ledgerimport.domain.account_conflicts import ensure_resolved
from ledgerimport.domain.entities import (
    AccountConflict,
    FieldMapping,
    ImportSettings,
    NewTransaction,
    PreviewTransaction,
    TransactionUpdate,
)
from ledgerimport.domain.errors import CommitError, ValidationError
from ledgerimport.domain.import_settings import ImportSettingsService
from ledgerimport.domain.preview import category_lookup, parse_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    """What an import did to the ledger."""

    changed: bool
    added: int = 0
    updated: int = 0
    skipped: int = 0


class ImportCommitService:
    """Applies the reviewed preview to the ledger."""

    def __init__(self, db: Database, settings_service: Optional[ImportSettingsService] = None):
        """Initialize import commit service.

        Args:
            db: Database instance
            settings_service: Where settings are saved after a successful import
        """
        self.db = db
        self.settings_service = settings_service or ImportSettingsService(db)

    def commit(
        self,
        transactions: Sequence[PreviewTransaction],
        mapping: FieldMapping,
        settings: ImportSettings,
        file_type: str,
        *,
        account_id: Optional[int] = None,
        date_format: Optional[str] = None,
        resolved: bool = False,
        conflicts: Optional[Mapping[int, AccountConflict]] = None,
    ) -> CommitResult:
        """Import the selected rows.

        Matched-existing rows are never sent. With reconciliation on,
        deselected rows are skipped unless they were ignored as duplicates;
        those go through as merges, which at most clear the existing
        transaction. Merge-selected matches update the existing transaction
        and need no account; re-selected duplicates are force-added.
        With reconciliation off every row is added.

        Args:
            transactions: Preview rows, in preview order
            mapping: Field mapping the preview was built with
            settings: Active import settings, saved on success
            file_type: Format tag of the imported file
            account_id: Target account, or None for all accounts
            date_format: Date format for unresolved files
            resolved: Dates and amounts are already typed
            conflicts: Account conflicts of the current preview

        Returns:
            CommitResult

        Raises:
            ConflictUnresolvedError: If an account conflict is still open
            FieldParseError: If a row's date or amount cannot be resolved
            ValidationError: If a row to be added has no account in an
                all-accounts import
            CommitError: If the ledger store rejects the batch
        """
        ensure_resolved(conflicts or {})

        lookup = category_lookup(self.db.list_categories())
        reconcile = settings.reconcile
        added: list[NewTransaction] = []
        updated: list[TransactionUpdate] = []
        skipped = 0

        for row in transactions:
            if row.is_matched_existing:
                continue
            if reconcile and not row.selected and not row.ignored:
                skipped += 1
                continue

            target = account_id if account_id is not None else row.account_id
            parsed = parse_record(
                row.transient_id, row.raw, mapping, settings, date_format, resolved, lookup, target
            )

            force_add = reconcile and (
                (row.ignored and row.selected)
                or (row.existing and row.selected and not row.selected_merge)
            )
            if reconcile and row.existing and not force_add:
                # Merges target the existing transaction's own account
                updated.append(
                    TransactionUpdate(
                        id=row.existing_match_id,
                        payee_name=parsed.payee,
                        imported_payee=parsed.imported_payee,
                        notes=parsed.notes,
                        category_id=parsed.category_id,
                        imported_id=parsed.imported_id,
                        cleared=settings.clear_on_import,
                    )
                )
                continue

            if target is None:
                raise ValidationError(
                    f"Row {row.transient_id} has no account; assign one before importing"
                )
            added.append(
                NewTransaction(
                    account_id=target,
                    date=parsed.date,
                    amount=parsed.amount,
                    payee_name=parsed.payee,
                    imported_payee=parsed.imported_payee,
                    notes=parsed.notes,
                    category_id=parsed.category_id,
                    imported_id=parsed.imported_id,
                    cleared=settings.clear_on_import,
                    force_add=force_add,
                )
            )

        try:
            batch = self.db.batch_update_transactions(added=added, updated=updated)
        except Exception as e:
            logger.error("Ledger rejected import batch: %s", e)
            raise CommitError(str(e)) from e

        self.settings_service.save(account_id, file_type, settings)

        result = CommitResult(
            changed=batch.changed,
            added=len(batch.added),
            updated=len(batch.updated),
            skipped=skipped,
        )
        logger.info(
            "Imported %d new, %d updated, %d skipped", result.added, result.updated, result.skipped
        )
        return result
