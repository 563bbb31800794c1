"""
Domain error hierarchy.

Every error carries a stable ``code`` so the API layer can translate it
into a structured response without string matching.
"""

from __future__ import annotations

from typing import Optional


class PermitError(Exception):
    """Base class for all permit lifecycle failures."""

    code = "permit_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(PermitError):
    code = "not_found"


class InvalidState(PermitError):
    """Operation attempted against a permit in the wrong lifecycle state."""

    code = "invalid_state"


class NotReady(PermitError):
    """Submit attempted before the checklist and photos are complete."""

    code = "not_ready"

    def __init__(
        self,
        missing_checklist: list[str],
        missing_photos: list[str],
    ):
        incomplete = []
        if missing_checklist:
            incomplete.append("checklist")
        if missing_photos:
            incomplete.append("photos")
        super().__init__(
            "Permit is not ready: incomplete " + " and ".join(incomplete)
        )
        self.missing_checklist = missing_checklist
        self.missing_photos = missing_photos


class ValidationError(PermitError):
    """A photo failed the upload policy."""

    code = "validation_error"

    def __init__(self, errors: list[str], slot: Optional[str] = None):
        super().__init__("; ".join(errors))
        self.errors = errors
        self.slot = slot


class UpstreamFailure(PermitError):
    """An external gateway call failed."""

    code = "upstream_failure"
