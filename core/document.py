"""OpenAPI v2 document model and parsing."""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from core.exceptions import MalformedDocument


class DocumentInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    version: str


class OpenAPIDocument(BaseModel):
    """Recognized top-level shape of a Swagger 2.0 document.

    Path entries are opaque JSON values; any other top-level field
    (definitions, securityDefinitions, ...) is carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    swagger: str
    info: DocumentInfo
    paths: dict[str, Any]

    def to_json(self) -> bytes:
        return json.dumps(self.model_dump(mode="json"), separators=(",", ":")).encode()


@dataclass(frozen=True)
class CachedDocument:
    """A document fetched once at startup; served verbatim for the process lifetime."""

    body: bytes
    document: OpenAPIDocument


def parse_document(data: bytes) -> OpenAPIDocument:
    """Parse raw bytes into an OpenAPIDocument or raise MalformedDocument."""
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedDocument(f"Invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedDocument("OpenAPI document must be a JSON object")
    try:
        return OpenAPIDocument.model_validate(payload)
    except ValidationError as e:
        raise MalformedDocument(f"Unrecognized OpenAPI document: {e}") from e
