"""Custom exception classes for the Class2Class program store.

Missing records are never raised: selectors and the store return ``None`` or
empty collections. Exceptions are reserved for programmer errors, illegal
invitation transitions, and stale references when strict mode is enabled.
"""


class Class2ClassError(Exception):
    """Base exception for all program store errors."""

    pass


class UnknownTableError(Class2ClassError):
    """Raised when a table key is not part of the store schema."""

    def __init__(self, table: str):
        """Initialize the exception.

        Args:
            table: The table key that was requested.
        """
        self.table = table
        super().__init__(f"Unknown table '{table}'")


class StaleReferenceError(Class2ClassError):
    """Raised in strict mode when a reference points at a missing row."""

    def __init__(self, table: str, record_id: str, field: str):
        """Initialize the exception.

        Args:
            table: The table the reference points into.
            record_id: The id that could not be resolved.
            field: The referencing field name.
        """
        self.table = table
        self.record_id = record_id
        self.field = field
        super().__init__(
            f"Field '{field}' references missing {table} row '{record_id}'"
        )


class InvitationStateError(Class2ClassError):
    """Raised when an invitation transition is not allowed."""

    pass


class DuplicateRecordError(Class2ClassError):
    """Raised when a write would repeat a unique key of a table."""

    def __init__(self, table: str, fields: tuple, values: tuple):
        """Initialize the exception.

        Args:
            table: The table being written.
            fields: The unique key field names.
            values: The repeated key values.
        """
        self.table = table
        self.fields = fields
        self.values = values
        super().__init__(
            f"{table} already has a row with {dict(zip(fields, values))}"
        )
