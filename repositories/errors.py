"""
Exceptions raised by the repository layer.

Rule violations detected inside a write transaction are raised as
GameStateError subclasses so the transaction rolls back; the service layer
translates them into Result failures with an error code.
"""


class StorageUnavailableError(Exception):
    """The store stayed unreachable after the configured retries."""


class GameStateError(ValueError):
    """Base class for lifecycle rule violations."""


class GameNotFoundError(GameStateError):
    pass


class PlayerNotInGameError(GameStateError):
    pass


class AlreadyInGameError(GameStateError):
    pass


class QueueFullError(GameStateError):
    pass


class BadPasswordError(GameStateError):
    pass


class InvalidTransitionError(GameStateError):
    pass


class SelectionCompleteError(GameStateError):
    pass


class NotInQueueError(GameStateError):
    pass
