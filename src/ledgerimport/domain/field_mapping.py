"""Field mapping inference for delimited files.

Maps raw column names to the canonical transaction slots. Inference looks
at the column names first and the values of the first record second; each
column is claimed by at most one slot.
"""

import re
from dataclasses import replace
from typing import Any, Optional, Sequence

from ledgerimport.domain.entities import FieldMapping, RawRecord

_DATE_VALUE = re.compile(r"^\d+[-/]\d+[-/]\d+$")
_AMOUNT_VALUE = re.compile(r"^-?[.,\d]+$")

_OUTFLOW_NAMES = ("outflow", "debit", "withdrawal")
_INFLOW_NAMES = ("inflow", "credit", "deposit")

# Fields adapters add for their own bookkeeping; never offered for mapping.
_INTERNAL_FIELDS = {"splits", "imported_payee"}


def _fields(record: RawRecord) -> list[tuple[str, Any]]:
    return [(name, value) for name, value in record.fields.items() if name not in _INTERNAL_FIELDS]


def _by_name(fields: list[tuple[str, Any]], keyword: str, taken: set) -> Optional[str]:
    for name, _ in fields:
        if name not in taken and keyword in name.lower():
            return name
    return None


def _by_value(fields: list[tuple[str, Any]], pattern: re.Pattern, taken: set) -> Optional[str]:
    for name, value in fields:
        if name not in taken and value is not None and pattern.match(str(value)):
            return name
    return None


def _first_free(fields: list[tuple[str, Any]], taken: set) -> Optional[str]:
    for name, _ in fields:
        if name not in taken:
            return name
    return None


def infer_field_mapping(records: Sequence[RawRecord]) -> FieldMapping:
    """Guess a mapping from the first record of a file.

    Args:
        records: Parsed records; only the first one is sampled

    Returns:
        FieldMapping in single-amount mode (empty when there are no records)
    """
    if not records:
        return FieldMapping()

    fields = _fields(records[0])
    taken: set[str] = set()

    def claim(name: Optional[str]) -> Optional[str]:
        if name is not None:
            taken.add(name)
        return name

    date_field = claim(_by_name(fields, "date", taken) or _by_value(fields, _DATE_VALUE, taken))
    amount_field = claim(_by_name(fields, "amount", taken) or _by_value(fields, _AMOUNT_VALUE, taken))
    category_field = claim(_by_name(fields, "category", taken))
    payee_field = claim(_by_name(fields, "payee", taken) or _first_free(fields, taken))
    notes_field = claim(_by_name(fields, "notes", taken) or _first_free(fields, taken))
    in_out_field = claim(_first_free(fields, taken))

    return FieldMapping(
        date=date_field,
        amount=amount_field,
        payee=payee_field,
        notes=notes_field,
        category=category_field,
        in_out=in_out_field,
    )


def toggle_split_mode(
    mapping: FieldMapping, records: Sequence[RawRecord], enabled: bool
) -> FieldMapping:
    """Switch a mapping between single-amount and inflow/outflow columns.

    Inference runs again on the records. Entering split mode seeds
    ``outflow`` with an outflow-like column (or the inferred amount column)
    and ``inflow`` with an inflow-like column; leaving it restores the
    inferred amount column. Date, payee and category are kept; notes and
    the in/out indicator give up a column the split pair takes by name.
    """
    inferred = infer_field_mapping(records)
    if not enabled:
        return replace(mapping, inflow=None, outflow=None, amount=inferred.amount)

    fields = _fields(records[0]) if records else []
    taken = {c for c in (mapping.date, mapping.payee, mapping.category) if c is not None}
    outflow = None
    for keyword in _OUTFLOW_NAMES:
        outflow = outflow or _by_name(fields, keyword, taken)
    if outflow is None and inferred.amount not in taken:
        outflow = inferred.amount
    if outflow is not None:
        taken.add(outflow)
    inflow = None
    for keyword in _INFLOW_NAMES:
        inflow = inflow or _by_name(fields, keyword, taken)

    split = {inflow, outflow}
    # Built directly: replace() would pass through amount and inflow at once
    return FieldMapping(
        date=mapping.date,
        payee=mapping.payee,
        notes=None if mapping.notes in split else mapping.notes,
        category=mapping.category,
        in_out=None if mapping.in_out in split else mapping.in_out,
        inflow=inflow,
        outflow=outflow,
    )


def apply_field_mapping(record: RawRecord, mapping: FieldMapping) -> dict[str, Any]:
    """Read the canonical values of a record through a mapping.

    Returns:
        Dict keyed by slot name; unmapped slots are None. ``imported_payee``
        is the record's own imported payee when the adapter provides one,
        else the mapped payee.
    """
    values = {
        "date": record.get(mapping.date),
        "amount": record.get(mapping.amount),
        "payee": record.get(mapping.payee),
        "notes": record.get(mapping.notes),
        "category": record.get(mapping.category),
        "in_out": record.get(mapping.in_out),
        "inflow": record.get(mapping.inflow),
        "outflow": record.get(mapping.outflow),
    }
    for name in ("payee", "notes", "category"):
        if isinstance(values[name], str):
            values[name] = values[name].strip() or None
    values["imported_payee"] = record.fields.get("imported_payee", values["payee"])
    return values
