"""Tests for field mapping inference and application."""

import pytest

from ledgerimport.domain.entities import FieldMapping, RawRecord
from ledgerimport.domain.field_mapping import (
    apply_field_mapping,
    infer_field_mapping,
    toggle_split_mode,
)


def _record(**fields):
    return RawRecord(fields=dict(fields))


SPLIT_RECORDS = [
    RawRecord(fields={"Booked": "02/01/2024", "Description": "Grocer", "Debit": "45.00", "Credit": ""}),
]


def test_infer_by_column_names():
    """Columns named after a slot are claimed by it."""
    records = [_record(date="2024-01-02", amount="-45.00", payee="Grocer", notes="x", category="Food")]
    mapping = infer_field_mapping(records)

    assert mapping == FieldMapping(
        date="date", amount="amount", payee="payee", notes="notes", category="category"
    )


def test_infer_by_values():
    """Without telling names, values and column order decide."""
    records = [_record(**{"1": "Grocer", "2": "01/02/2024", "3": "-45,00", "4": "memo", "5": "DR"})]
    mapping = infer_field_mapping(records)

    assert mapping.date == "2"
    assert mapping.amount == "3"
    assert mapping.payee == "1"
    assert mapping.notes == "4"
    assert mapping.in_out == "5"
    assert mapping.category is None


def test_infer_claims_each_column_once():
    """No column is mapped twice."""
    records = [_record(**{"Date": "2024-01-02", "Amount": "1", "Other": "x"})]
    mapping = infer_field_mapping(records)
    claimed = [getattr(mapping, s) for s in ("date", "amount", "payee", "notes", "in_out") if getattr(mapping, s)]
    assert len(claimed) == len(set(claimed))
    assert mapping.notes is None


def test_infer_empty():
    """No records give an empty mapping."""
    assert infer_field_mapping([]) == FieldMapping()


def test_amount_and_split_are_exclusive():
    """A mapping cannot hold both encodings."""
    with pytest.raises(ValueError):
        FieldMapping(amount="a", inflow="b")


def test_toggle_split_mode_on_and_off():
    """Split mode takes debit/credit columns and gives amount back on exit."""
    mapping = infer_field_mapping(SPLIT_RECORDS)
    assert mapping.amount == "Debit"

    split = toggle_split_mode(mapping, SPLIT_RECORDS, True)
    assert split.split_mode
    assert split.amount is None
    assert split.outflow == "Debit"
    assert split.inflow == "Credit"
    assert split.date == "Booked"
    assert split.payee == "Description"

    single = toggle_split_mode(split, SPLIT_RECORDS, False)
    assert not single.split_mode
    assert single.amount == "Debit"


def test_toggle_split_mode_seeds_outflow_from_amount():
    """Without outflow-like columns the amount column becomes the outflow."""
    records = [_record(date="2024-01-02", amount="45", payee="Grocer")]
    split = toggle_split_mode(infer_field_mapping(records), records, True)
    assert split.outflow == "amount"
    assert split.inflow is None


def test_mapping_json_uses_stored_spelling():
    """The stored JSON spells the indicator slot inOut."""
    mapping = FieldMapping(date="d", amount="a", in_out="io")
    stored = mapping.to_dict()
    assert stored["inOut"] == "io"
    assert "in_out" not in stored
    assert FieldMapping.from_json(mapping.to_json()) == mapping


def test_mapping_from_stored_split_drops_amount():
    """A stored split mapping wins over a leftover amount."""
    mapping = FieldMapping.from_dict({"date": "d", "amount": "a", "outflow": "o", "inflow": ""})
    assert mapping.amount is None
    assert mapping.outflow == "o"
    assert mapping.inflow is None


def test_apply_field_mapping_is_idempotent():
    """Applying a mapping twice gives the same values."""
    record = _record(date="2024-01-02", amount="-45.00", payee=" Grocer ", notes="", category="Food")
    mapping = infer_field_mapping([record])

    first = apply_field_mapping(record, mapping)
    second = apply_field_mapping(record, mapping)
    assert first == second
    assert first["payee"] == "Grocer"
    assert first["notes"] is None
    assert first["imported_payee"] == "Grocer"
    assert first["inflow"] is None
