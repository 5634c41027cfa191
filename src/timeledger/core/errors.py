"""Exception taxonomy shared by the store, query layer and sync engine."""

from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID


class TimeLedgerError(Exception):
    """Base exception for timeledger operations."""

    pass


class NotFoundError(TimeLedgerError):
    """A mutation targeted a record that does not exist or is soft-deleted."""

    def __init__(self, entity: str, record_id: Any):
        super().__init__(f"{entity} {record_id} not found")
        self.entity = entity
        self.record_id = record_id


class ValidationError(TimeLedgerError):
    """Entity fields were rejected before anything was persisted."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class ConflictError(TimeLedgerError):
    """The remote rejected pushed records because their version is stale."""

    def __init__(self, message: str, record_ids: Sequence[UUID] = ()):
        super().__init__(message)
        self.record_ids = list(record_ids)


class TransportError(TimeLedgerError):
    """Network or remote failure during pull or push."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(TimeLedgerError):
    """The local persisted store failed to read or write."""

    pass
