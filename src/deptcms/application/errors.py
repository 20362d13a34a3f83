from __future__ import annotations


class DataAccessError(RuntimeError):
    """The database rejected a call; the driver exception is chained as ``__cause__``."""


class RecordNotFoundError(DataAccessError, LookupError):
    """A lookup that requires a row found none."""

    def __init__(self, resource: str, record_id: str):
        super().__init__(f"{resource} not found: {record_id}")
        self.resource = resource
        self.record_id = record_id
