"""Persisted per-account, per-format import preferences.

Settings live in the ledger's preference store. Key names are shared with
other clients of the same ledger and must not change. ``<acct>`` is the
account ID, or ``all`` for imports into all accounts:

- ``csv-delimiter-<acct>``, ``csv-has-header-<acct>``, ``csv-skip-lines-<acct>``
- ``csv-in-out-mode-<acct>``, ``csv-out-value-<acct>``, ``csv-mappings-<acct>``
- ``ofx-fallback-missing-payee-<acct>``
- ``parse-date-<acct>-<filetype>``, ``flip-amount-<acct>-<filetype>``,
  ``import-notes-<acct>-<filetype>``
"""

import logging
from dataclasses import replace
from typing import Optional

from ledgerimport.database.base import Database
from ledgerimport.domain.entities import FieldMapping, ImportSettings
from ledgerimport.formats import default_delimiter, is_bank_statement
from ledgerimport.utils.date_parser import DATE_FORMATS

logger = logging.getLogger(__name__)


def account_key(account_id: Optional[int]) -> str:
    """Preference namespace for an account (``all`` for aggregate imports)."""
    return str(account_id) if account_id is not None else "all"


def _bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return str(value).lower() == "true"


def _str(value: bool) -> str:
    return "true" if value else "false"


class ImportSettingsService:
    """Reads and writes import settings."""

    def __init__(self, db: Database):
        """Initialize import settings service.

        Args:
            db: Database instance
        """
        self.db = db

    def load(self, account_id: Optional[int], file_type: str, filepath: str = "") -> ImportSettings:
        """Load settings for an account and file type, with defaults.

        Args:
            account_id: Target account, or None for all accounts
            file_type: Format tag (``csv``, ``qif``, ``ofx``, ...)
            filepath: File being imported, used for the default delimiter

        Returns:
            ImportSettings
        """
        acct = account_key(account_id)
        prefs = self.db.get_preferences()

        settings = ImportSettings(
            delimiter=prefs.get(f"csv-delimiter-{acct}") or default_delimiter(filepath),
            has_header_row=_bool(prefs.get(f"csv-has-header-{acct}"), True),
            skip_lines=self._int(prefs.get(f"csv-skip-lines-{acct}")),
            in_out_mode=_bool(prefs.get(f"csv-in-out-mode-{acct}"), False),
            out_value=prefs.get(f"csv-out-value-{acct}") or "",
            fallback_missing_payee=_bool(prefs.get(f"ofx-fallback-missing-payee-{acct}"), True),
        )

        if file_type in ("csv", "qif"):
            settings = replace(
                settings,
                flip_amount=_bool(prefs.get(f"flip-amount-{acct}-{file_type}"), False),
                import_notes=_bool(prefs.get(f"import-notes-{acct}-{file_type}"), True),
            )

        if not is_bank_statement(file_type):
            date_format = prefs.get(f"parse-date-{acct}-{file_type}")
            if date_format in DATE_FORMATS:
                settings = replace(settings, date_format=date_format)

        if file_type == "csv":
            stored = prefs.get(f"csv-mappings-{acct}")
            if stored:
                try:
                    settings = replace(settings, field_mapping=FieldMapping.from_json(stored))
                except (ValueError, TypeError, AttributeError) as e:
                    logger.warning("Ignoring unreadable field mapping for %s: %s", acct, e)

        return settings

    def save(self, account_id: Optional[int], file_type: str, settings: ImportSettings) -> None:
        """Write the settings that apply to the file type.

        Args:
            account_id: Target account, or None for all accounts
            file_type: Format tag
            settings: Settings used for the import
        """
        acct = account_key(account_id)
        values: dict[str, str] = {}

        if not is_bank_statement(file_type) and settings.date_format:
            values[f"parse-date-{acct}-{file_type}"] = settings.date_format

        if is_bank_statement(file_type):
            values[f"ofx-fallback-missing-payee-{acct}"] = _str(settings.fallback_missing_payee)

        if file_type == "csv":
            if settings.field_mapping is not None:
                values[f"csv-mappings-{acct}"] = settings.field_mapping.to_json()
            values[f"csv-delimiter-{acct}"] = settings.delimiter
            values[f"csv-has-header-{acct}"] = _str(settings.has_header_row)
            values[f"csv-skip-lines-{acct}"] = str(settings.skip_lines)
            values[f"csv-in-out-mode-{acct}"] = _str(settings.in_out_mode)
            values[f"csv-out-value-{acct}"] = settings.out_value

        if file_type in ("csv", "qif"):
            values[f"flip-amount-{acct}-{file_type}"] = _str(settings.flip_amount)
            values[f"import-notes-{acct}-{file_type}"] = _str(settings.import_notes)

        self.db.save_preferences(values)
        logger.debug("Saved %d import settings for %s/%s", len(values), acct, file_type)

    @staticmethod
    def _int(value: Optional[str]) -> int:
        try:
            return max(int(value), 0) if value is not None else 0
        except ValueError:
            return 0

