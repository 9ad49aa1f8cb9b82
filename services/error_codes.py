"""
Standard error codes for service layer.

These error codes allow callers (the API layer, the cleanup worker) to
programmatically handle specific error conditions without parsing error
message text.

Usage:
    from services.error_codes import NOT_FOUND, QUEUE_FULL
    from services.result import Result

    if game is None:
        return Result.fail("Game not found", code=NOT_FOUND)

    if game.is_full:
        return Result.fail("Game is full", code=QUEUE_FULL)
"""

from repositories import errors

# General errors
NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"
PERMISSION_DENIED = "permission_denied"

# Queue errors
ALREADY_IN_GAME = "already_in_game"
QUEUE_FULL = "queue_full"
BAD_PASSWORD = "bad_password"
NOT_IN_QUEUE = "not_in_queue"

# Lifecycle errors
INVALID_STATE_TRANSITION = "invalid_state_transition"
SELECTION_ALREADY_COMPLETE = "selection_already_complete"

# Infrastructure errors
STORAGE_UNAVAILABLE = "storage_unavailable"


def code_for_exception(exc: Exception) -> str:
    """Map a repository exception to its error code."""
    mapping = {
        errors.GameNotFoundError: NOT_FOUND,
        errors.PlayerNotInGameError: NOT_FOUND,
        errors.AlreadyInGameError: ALREADY_IN_GAME,
        errors.QueueFullError: QUEUE_FULL,
        errors.BadPasswordError: BAD_PASSWORD,
        errors.InvalidTransitionError: INVALID_STATE_TRANSITION,
        errors.SelectionCompleteError: SELECTION_ALREADY_COMPLETE,
        errors.NotInQueueError: NOT_IN_QUEUE,
        errors.StorageUnavailableError: STORAGE_UNAVAILABLE,
    }
    for exc_type, code in mapping.items():
        if isinstance(exc, exc_type):
            return code
    return VALIDATION_ERROR
