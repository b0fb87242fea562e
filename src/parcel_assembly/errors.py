"""Error taxonomy for the parcel engine.

None of these are process-fatal. Parse and fetch errors are recovered where
they happen; interaction errors carry a message meant for the user.
"""

from __future__ import annotations

from typing import Optional


class ParcelAssemblyError(Exception):
    pass


class BoundaryParseError(ParcelAssemblyError, ValueError):
    pass


class FetchError(ParcelAssemblyError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ParcelInteractionError(ParcelAssemblyError):
    """Raised by click handling; the engine shows `str(exc)` to the user."""


class IncompleteParcelData(ParcelInteractionError):
    pass


class DuplicateAddress(ParcelInteractionError):
    def __init__(self, full_address: str):
        super().__init__("This address is already in your project!")
        self.full_address = full_address


class OptimisticAddFailure(ParcelInteractionError):
    def __init__(self, temp_id: str, cause: Optional[BaseException] = None):
        super().__init__("Failed to add address. Please try again.")
        self.temp_id = temp_id
        self.cause = cause
