"""
Exception classes raised by the user/project store.
"""


class TaskboardError(Exception):
    """Base exception for all store errors"""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(TaskboardError):
    """Raised when the addressed user or project does not exist"""


class InvalidRequestError(TaskboardError):
    """Raised when an operation receives malformed input"""


class StorageError(TaskboardError):
    """Raised when the backing store fails or rejects an operation"""

    def __init__(self, operation: str, message: str):
        super().__init__(message, {"operation": operation})


class ConcurrentModificationError(StorageError):
    """Raised when a user document changed between read and save"""

    def __init__(self, user_id: str):
        super().__init__(
            "save",
            f"User {user_id} was modified concurrently; reload and retry",
        )
        self.details["user_id"] = user_id
