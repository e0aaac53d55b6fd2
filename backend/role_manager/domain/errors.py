class StoreError(Exception):
    """Base exception for record store errors."""
    pass


class DuplicateKeyError(StoreError):
    """Raised when a write violates a uniqueness constraint."""

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Duplicate value for {field}: {value}")
