"""QIF (Quicken Interchange Format) tokenizer and adapter.

A QIF file is a list of single-character tagged lines. Transactions end
with a ``^`` line; optional ``!Account`` blocks name the account the
following ``!Type:`` section belongs to.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ledgerimport.domain.entities import RawRecord
from ledgerimport.domain.errors import FormatError
from ledgerimport.formats.base import FormatAdapter, ParseOptions, ParsedFile

logger = logging.getLogger(__name__)

_TYPE_LINE = re.compile(r"^!Type:(.*)$")

# Quicken writes these between account lists; they carry no data.
_IGNORED_DIRECTIVES = ("!Option:", "!Clear:")


@dataclass
class QIFSplit:
    """One ``S``/``E``/``$`` split line group."""

    category: Optional[str] = None
    subcategory: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[str] = None


@dataclass
class QIFTransaction:
    """Raw fields of one QIF transaction, values kept as text."""

    type: Optional[str] = None
    date: Optional[str] = None
    amount: Optional[str] = None
    number: Optional[str] = None
    memo: Optional[str] = None
    address: list[str] = field(default_factory=list)
    cleared_status: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    payee: Optional[str] = None
    splits: list[QIFSplit] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self == QIFTransaction(type=self.type)


@dataclass
class QIFFile:
    """Tokenized QIF file."""

    date_format_hint: Optional[str]
    type: Optional[str] = None
    account_name: Optional[str] = None
    transactions: list[QIFTransaction] = field(default_factory=list)


def _split_category(value: str) -> tuple[str, Optional[str]]:
    parts = value.split(":")
    return parts[0], parts[1] if len(parts) > 1 else None


def _read_account_block(lines: list[str], pos: int) -> tuple[Optional[str], Optional[str], int]:
    """Read the lines after ``!Account`` up to ``^`` or a ``!Type:`` line.

    Returns:
        Tuple of (account name, account type, position after the block)
    """
    name = None
    account_type = None
    while pos < len(lines):
        line = lines[pos]
        if line == "^":
            pos += 1
            break
        if line.startswith("!Type:"):
            break
        if line[0] in ("N", "L"):
            # Some banks write the account name with L instead of N
            name = line[1:].strip()
        elif line[0] == "T":
            account_type = line[1:].strip()
        pos += 1
    return name, account_type, pos


def tokenize_qif(text: str, date_format: Optional[str] = None) -> QIFFile:
    """Split QIF text into raw transactions.

    Args:
        text: File contents
        date_format: Date format the caller expects, returned as the hint

    Returns:
        QIFFile with one QIFTransaction per ``^``-terminated block

    Raises:
        FormatError: If the ``!Type:`` header is missing and no account name
            was found, or a line uses an unknown detail code
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    result = QIFFile(date_format_hint=date_format)
    pos = 0
    while pos < len(lines) and lines[pos].startswith(_IGNORED_DIRECTIVES):
        pos += 1

    if pos < len(lines) and lines[pos].startswith("!Account"):
        name, _, pos = _read_account_block(lines, pos + 1)
        result.account_name = name
        while pos < len(lines) and lines[pos].startswith(_IGNORED_DIRECTIVES):
            pos += 1

    type_line = lines[pos] if pos < len(lines) else None
    match = _TYPE_LINE.match(type_line) if type_line else None
    if match is None:
        if result.account_name:
            return result
        raise FormatError(f"File does not appear to be a valid QIF transaction file: {type_line}")
    result.type = match.group(1).strip()
    pos += 1

    current_type = result.type
    transaction = QIFTransaction(type=current_type)
    split = QIFSplit()

    def flush():
        nonlocal transaction, split
        if not transaction.is_empty():
            result.transactions.append(transaction)
        transaction = QIFTransaction(type=current_type)
        split = QIFSplit()

    while pos < len(lines):
        line = lines[pos]
        pos += 1

        if line == "^":
            flush()
            continue

        if line.startswith("!Account"):
            flush()
            name, _, pos = _read_account_block(lines, pos)
            if name:
                result.account_name = name
            type_line = lines[pos] if pos < len(lines) else None
            match = _TYPE_LINE.match(type_line) if type_line else None
            if match is None:
                break
            current_type = result.type = match.group(1).strip()
            transaction = QIFTransaction(type=current_type)
            pos += 1
            continue

        if line.startswith("!Type:"):
            flush()
            current_type = result.type = line[len("!Type:"):].strip()
            transaction = QIFTransaction(type=current_type)
            continue

        if line.startswith(_IGNORED_DIRECTIVES):
            continue

        code, value = line[0], line[1:]
        if code == "D":
            transaction.date = value
        elif code in ("T", "U"):
            if code == "T" or transaction.amount is None:
                transaction.amount = value
        elif code == "N":
            transaction.number = value
        elif code == "M":
            transaction.memo = value
        elif code == "A":
            transaction.address.append(value)
        elif code == "P":
            transaction.payee = value.replace("&amp;", "&")
        elif code == "L":
            transaction.category, transaction.subcategory = _split_category(value)
        elif code == "C":
            transaction.cleared_status = value
        elif code == "S":
            split.category, split.subcategory = _split_category(value)
        elif code == "E":
            split.description = value
        elif code == "$":
            split.amount = value
            transaction.splits.append(split)
            split = QIFSplit()
        else:
            raise FormatError(f"Unknown Detail Code: {code}")

    flush()
    logger.debug("Tokenized %d QIF transactions", len(result.transactions))
    return result


class QIFAdapter(FormatAdapter):
    """Adapter for QIF files.

    Split lines are either kept on the parent record (``aggregate``) or
    expanded into one record per split (``expand``).
    """

    file_type = "qif"

    def parse(self, text: str, options: ParseOptions) -> ParsedFile:
        qif = tokenize_qif(text, date_format=options.date_format)
        records = []
        for txn in qif.transactions:
            records.extend(self._to_records(txn, options))
        return ParsedFile(
            file_type=self.file_type,
            records=tuple(records),
            account_name=qif.account_name,
            account_type=qif.type,
            date_format_hint=qif.date_format_hint,
        )

    def _to_records(self, txn: QIFTransaction, options: ParseOptions) -> list[RawRecord]:
        base = {
            "date": txn.date,
            "amount": txn.amount,
            "payee": txn.payee,
            "imported_payee": txn.payee,
            "notes": txn.memo if options.import_notes else None,
            "category": txn.subcategory or txn.category,
            "number": txn.number,
            "cleared": txn.cleared_status,
            "address": ", ".join(txn.address) if txn.address else None,
            "type": txn.type,
        }

        if not txn.splits:
            return [RawRecord(fields=base, extracted_account_type=txn.type)]

        if options.qif_split_mode == "expand":
            records = []
            for split in txn.splits:
                fields = dict(base)
                fields["amount"] = split.amount
                fields["category"] = split.subcategory or split.category
                if options.import_notes and split.description:
                    fields["notes"] = split.description
                records.append(RawRecord(fields=fields, extracted_account_type=txn.type))
            return records

        fields = dict(base)
        fields["splits"] = tuple(
            {
                "category": s.subcategory or s.category,
                "notes": s.description,
                "amount": s.amount,
            }
            for s in txn.splits
        )
        return [RawRecord(fields=fields, extracted_account_type=txn.type)]
