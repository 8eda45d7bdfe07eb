"""Domain exceptions for the persistent store."""


class StateStoreError(Exception):
    """Base exception for all persistent store errors."""


class StoreOpenError(StateStoreError):
    """Raised when the store failed to open.

    Terminal: every queued and future operation fails with this error
    until the process restarts.
    """

    def __init__(self, db_path: str, reason: str) -> None:
        """Initialize the error.

        Args:
            db_path: Path of the database file.
            reason: Why opening failed.
        """
        self.db_path = db_path
        self.reason = reason
        super().__init__(f"Failed to open store at {db_path}: {reason}")


class StoreOperationError(StateStoreError):
    """Raised when a read or write operation fails.

    Writes are rolled back; nothing from the failed operation is committed.
    """

    def __init__(self, operation: str, reason: str) -> None:
        """Initialize the error.

        Args:
            operation: Name of the failed operation.
            reason: Why it failed.
        """
        self.operation = operation
        super().__init__(f"Store {operation} failed: {reason}")


class WrongContextError(StateStoreError):
    """Raised when an operation is called outside its required context."""


class StoreStateError(StateStoreError):
    """Raised when an invalid store state transition is attempted."""


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
