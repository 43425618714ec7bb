"""Custom exception hierarchy for vendconsole."""

from __future__ import annotations


class VendError(Exception):
    """Base exception for all vendconsole errors."""


class VendConfigError(VendError):
    """Invalid or missing configuration."""


class VendTransportError(VendError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)

    @property
    def is_permission_denied(self) -> bool:
        return self.status_code in (401, 403)


class VendAuthenticationError(VendError):
    """Sign-in failed or no actor identity is available."""


class VendValidationError(VendError):
    """User-correctable input problem (malformed batch file, blank field).

    ``field`` names the offending column or argument when there is one.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class VendAlreadySoldError(VendValidationError):
    """A batch tried to re-import codes that were already sold."""

    def __init__(self, message: str, *, codes: tuple[str, ...] = ()) -> None:
        self.codes = codes
        super().__init__(message, field="Login")


class VendWriteError(VendError):
    """The record store rejected or failed a single-document write.

    Never retried internally; the caller decides whether to try again.
    """

    def __init__(self, message: str, *, doc_id: str | None = None) -> None:
        self.doc_id = doc_id
        super().__init__(message)


class VendSubscriptionError(VendError):
    """A live query failed.

    The affected collection keeps its last known value until the topic is
    re-subscribed.
    """

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class VendImportError(VendError):
    """The atomic bulk write of a parsed batch failed.

    Nothing was applied, so retrying the whole import is safe.
    """

    def __init__(self, message: str, *, staged: int = 0) -> None:
        self.staged = staged
        super().__init__(message)
