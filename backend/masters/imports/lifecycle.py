"""Import run state machine.

idle → file_selected → parsed → previewing → importing → completed
Any state before ``importing`` may be aborted. Once importing has started
the run always ends in ``completed``; closing it only requests cancellation.
"""
from enum import Enum

from masters.imports.errors import InvalidTransitionError


class ImportStatus(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    PARSED = "parsed"
    PREVIEWING = "previewing"
    IMPORTING = "importing"
    COMPLETED = "completed"
    ABORTED = "aborted"


_ABORTABLE = {
    ImportStatus.IDLE,
    ImportStatus.FILE_SELECTED,
    ImportStatus.PARSED,
    ImportStatus.PREVIEWING,
}

ALLOWED_TRANSITIONS: dict[ImportStatus, set[ImportStatus]] = {
    ImportStatus.IDLE: {ImportStatus.FILE_SELECTED},
    ImportStatus.FILE_SELECTED: {ImportStatus.PARSED},
    ImportStatus.PARSED: {ImportStatus.PREVIEWING},
    ImportStatus.PREVIEWING: {ImportStatus.IMPORTING},
    ImportStatus.IMPORTING: {ImportStatus.COMPLETED},
    ImportStatus.COMPLETED: set(),
    ImportStatus.ABORTED: set(),
}
for _status in _ABORTABLE:
    ALLOWED_TRANSITIONS[_status].add(ImportStatus.ABORTED)

TERMINAL = frozenset({ImportStatus.COMPLETED, ImportStatus.ABORTED})


def can_transition(current: str, target: str) -> bool:
    try:
        return ImportStatus(target) in ALLOWED_TRANSITIONS[ImportStatus(current)]
    except ValueError:
        return False


def transition(current: str, target: str) -> ImportStatus:
    """Validate ``current → target`` and return the new status."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return ImportStatus(target)


def is_abortable(status: str) -> bool:
    return status in {s.value for s in _ABORTABLE}


def is_terminal(status: str) -> bool:
    return status in {s.value for s in TERMINAL}
