"""Tests for the preview row selection state machine."""

import pytest

from ledgerimport.domain.entities import RawRecord, PreviewTransaction, SelectionState
from ledgerimport.domain.preview import toggle_selection
from ledgerimport.domain.selection import initial_selection, next_selection
from ledgerimport.domain.errors import NotFoundError


def test_matched_row_cycles_three_states():
    """Matched rows go merge, no-merge, deselected and back."""
    state = SelectionState.MERGE_SELECTED
    seen = []
    for _ in range(3):
        state = next_selection(state, matched=True)
        seen.append(state)
    assert seen == [
        SelectionState.SELECTED_NO_MERGE,
        SelectionState.DESELECTED,
        SelectionState.MERGE_SELECTED,
    ]


def test_unmatched_row_toggles_two_states():
    """Unmatched rows only toggle selected."""
    state = initial_selection(matched=False, ignored=False)
    assert state is SelectionState.SELECTED_NO_MERGE
    state = next_selection(state, matched=False)
    assert state is SelectionState.DESELECTED
    assert next_selection(state, matched=False) is SelectionState.SELECTED_NO_MERGE


def test_initial_selection():
    """Ignored matches start deselected, other matches merge-selected."""
    assert initial_selection(matched=True, ignored=True) is SelectionState.DESELECTED
    assert initial_selection(matched=True, ignored=False) is SelectionState.MERGE_SELECTED


def _matched_row(selection=SelectionState.MERGE_SELECTED):
    return PreviewTransaction(transient_id=0, raw=RawRecord(), existing_match_id=7, selection=selection)


def test_toggle_three_times_restores_flags():
    """Three toggles return a matched row to its (selected, merge) flags."""
    rows = (_matched_row(), PreviewTransaction(transient_id=1, raw=RawRecord()))
    original = (rows[0].selected, rows[0].selected_merge)

    flags = []
    for _ in range(3):
        rows = toggle_selection(rows, 0)
        flags.append((rows[0].selected, rows[0].selected_merge))

    assert flags == [(True, False), (False, False), original]
    assert rows[1].selection is SelectionState.SELECTED_NO_MERGE


def test_toggle_updates_matched_existing_row():
    """The display row of the existing transaction mirrors its row."""
    rows = (
        _matched_row(),
        PreviewTransaction(
            transient_id=0, raw=RawRecord(), existing_match_id=7, is_matched_existing=True,
            selection=SelectionState.MERGE_SELECTED,
        ),
    )
    rows = toggle_selection(rows, 0)
    assert rows[1].selection is SelectionState.SELECTED_NO_MERGE


def test_toggle_unknown_row():
    """Toggling a row that does not exist fails."""
    with pytest.raises(NotFoundError):
        toggle_selection((), 3)


def test_selected_merge_requires_match():
    """Unmatched rows never report a merge."""
    row = PreviewTransaction(transient_id=0, raw=RawRecord(), selection=SelectionState.MERGE_SELECTED)
    assert row.selected
    assert not row.selected_merge
