"""Selection state machine for preview rows.

Rows matched to an existing transaction cycle through three states::

    MERGE_SELECTED -> SELECTED_NO_MERGE -> DESELECTED -> MERGE_SELECTED

Unmatched rows only toggle between SELECTED_NO_MERGE and DESELECTED.
"""

from ledgerimport.domain.entities import SelectionState

_MATCHED_CYCLE = {
    SelectionState.MERGE_SELECTED: SelectionState.SELECTED_NO_MERGE,
    SelectionState.SELECTED_NO_MERGE: SelectionState.DESELECTED,
    SelectionState.DESELECTED: SelectionState.MERGE_SELECTED,
}

_UNMATCHED_CYCLE = {
    SelectionState.MERGE_SELECTED: SelectionState.DESELECTED,
    SelectionState.SELECTED_NO_MERGE: SelectionState.DESELECTED,
    SelectionState.DESELECTED: SelectionState.SELECTED_NO_MERGE,
}


def next_selection(state: SelectionState, matched: bool) -> SelectionState:
    """Return the state a row moves to when the user toggles it."""
    cycle = _MATCHED_CYCLE if matched else _UNMATCHED_CYCLE
    return cycle[state]


def initial_selection(matched: bool, ignored: bool) -> SelectionState:
    """Selection of a freshly previewed row.

    Ignored matches start deselected, other matches start merge-selected.
    """
    if ignored:
        return SelectionState.DESELECTED
    if matched:
        return SelectionState.MERGE_SELECTED
    return SelectionState.SELECTED_NO_MERGE
