"""Storage format of a cached page.

A rendered CompleteResponse is stored as this model serialized to JSON; the
cache itself only sees opaque bytes.
"""

import base64

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from isr_adapter.entities import CompleteResponse
from isr_adapter.errors import CacheCorruption

# Headers that describe one transfer, not the page
_TRANSIENT_HEADERS = frozenset({"age", "content-length", "date", "x-isr-cache", "x-request-id"})


class CachedPage(BaseModel):
    """Serialized CompleteResponse."""

    model_config = ConfigDict(frozen=True)

    status: int = Field(..., ge=100, le=599)
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: str = Field("", description="Base64-encoded body")
    revalidate: float | None = Field(None, ge=0)

    @field_validator("body")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        base64.b64decode(value, validate=True)
        return value

    @property
    def content(self) -> bytes:
        return base64.b64decode(self.body)

    @classmethod
    def from_response(cls, response: CompleteResponse) -> "CachedPage":
        return cls(
            status=response.status,
            headers=[pair for pair in response.headers if pair[0] not in _TRANSIENT_HEADERS],
            body=base64.b64encode(response.body).decode("ascii"),
            revalidate=response.revalidate,
        )

    def to_response(self) -> CompleteResponse:
        return CompleteResponse(
            status=self.status,
            headers=tuple(self.headers),
            body=self.content,
            revalidate=self.revalidate,
        )

    def encode(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def decode(cls, key: str, raw: bytes) -> "CachedPage":
        """Parse stored bytes.

        Raises:
            CacheCorruption: If the payload is not a valid cached page
        """
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise CacheCorruption(key, f"{e.error_count()} validation error(s)") from e
