"""Photo upload policy: checked before any bytes reach the object store."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UploadPolicy:
    max_bytes: int = 10 * 1024 * 1024
    allowed_mime_types: frozenset[str] = frozenset(
        {"image/jpeg", "image/jpg", "image/png"}
    )

    def violations(self, size: int, mime_type: str) -> list[str]:
        """Return every rule the file breaks (empty list means valid)."""
        errors: list[str] = []
        mime_type = (mime_type or "").lower()
        if size > self.max_bytes:
            errors.append(
                f"File size {size} bytes exceeds the {self.max_bytes} byte limit"
            )
        if mime_type not in self.allowed_mime_types:
            allowed = ", ".join(sorted(self.allowed_mime_types))
            errors.append(f"MIME type {mime_type or '<none>'} is not one of: {allowed}")
        if not mime_type.startswith("image/"):
            errors.append("File must be an image")
        return errors
