"""Storage-level exceptions raised by repository implementations."""


class StorageError(Exception):
    """Transient infrastructure failure while reading or writing a record."""


class ConflictError(StorageError):
    """A conditional write lost a race: the record changed since it was read."""

    def __init__(self, key: str, expected_version: int | None) -> None:
        self.key = key
        self.expected_version = expected_version
        super().__init__(f"conditional write on {key!r} failed (expected version {expected_version})")
