"""
Sync Error Taxonomy

Every failure surfaced by the sync engine is one of four kinds so callers
can tell "fix your data" apart from "try again":
- PRECONDITION: local data missing, raised before any remote call
- NOT_FOUND: Channex returned 404 (stale mapping)
- VALIDATION: Channex returned 422, with a field-level detail map
- REMOTE: network failure, 5xx, or any other non-2xx response
"""

import enum
from typing import Any, Dict, Optional


class SyncErrorKind(str, enum.Enum):
    PRECONDITION = "precondition"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    REMOTE = "remote"


class SyncError(Exception):
    kind = SyncErrorKind.REMOTE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        fields: Optional[Dict[str, Any]] = None,
        retried: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.fields = fields or {}
        self.retried = retried

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "fields": self.fields,
            "retried": self.retried,
        }

    def __repr__(self):
        return f"<{type(self).__name__} {self.kind.value}: {self.message}>"


class PreconditionError(SyncError):
    kind = SyncErrorKind.PRECONDITION


class RemoteNotFoundError(SyncError):
    kind = SyncErrorKind.NOT_FOUND


class RemoteValidationError(SyncError):
    kind = SyncErrorKind.VALIDATION

    def has_field(self, *names: str) -> bool:
        return any(name in self.fields for name in names)


class RemoteRequestError(SyncError):
    kind = SyncErrorKind.REMOTE


class WebhookValidationError(ValueError):
    """Inbound envelope rejected before anything is persisted"""
