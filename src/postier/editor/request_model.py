"""Dataclasses describing request documents and their on-disk format."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

__all__ = [
    "REQUEST_FILE_EXTENSION",
    "DEFAULT_METHOD",
    "HTTP_METHODS",
    "BodyType",
    "KeyValue",
    "Cookie",
    "HTTPRequest",
    "HTTPResponse",
    "RequestDocument",
    "RequestDraft",
    "is_request_file",
    "strip_extension",
    "ensure_extension",
    "infer_content_type",
    "pairs_to_mapping",
    "mapping_to_pairs",
    "serialize_document",
    "parse_document",
]

REQUEST_FILE_EXTENSION = ".postier"
DEFAULT_METHOD = "GET"
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
_SCHEME_PATTERN = re.compile(r"http(s*)://")
_EXTENSION_PATTERN = re.compile(r"\.[^/.]+$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BodyType(str, Enum):
    """Kinds of request body the editor understands."""

    NONE = "none"
    JSON = "json"
    TEXT = "text"
    XML = "xml"
    SPARQL = "sparql"

    @classmethod
    def coerce(cls, value: Any) -> "BodyType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE


_CONTENT_TYPES: Mapping[BodyType, str] = {
    BodyType.JSON: "application/json",
    BodyType.TEXT: "text/plain",
    BodyType.XML: "application/xml",
    BodyType.SPARQL: "application/sparql-query",
}


def infer_content_type(body_type: BodyType) -> str | None:
    """Return the ``Content-Type`` implied by ``body_type``, if any."""

    return _CONTENT_TYPES.get(body_type)


def is_request_file(path: str) -> bool:
    return path.endswith(REQUEST_FILE_EXTENSION)


def strip_extension(name: str) -> str:
    return _EXTENSION_PATTERN.sub("", name)


def ensure_extension(name: str) -> str:
    return name if name.endswith(REQUEST_FILE_EXTENSION) else f"{name}{REQUEST_FILE_EXTENSION}"


@dataclass(slots=True, frozen=True)
class KeyValue:
    """One header or query-parameter row."""

    key: str = ""
    value: str = ""

    def is_complete(self) -> bool:
        return bool(self.key) and bool(self.value)

    def sort_key(self) -> tuple[str, str]:
        return (self.key, self.value)


def pairs_to_mapping(pairs: Iterable[KeyValue]) -> dict[str, str]:
    """Collapse rows into the mapping that gets sent and persisted.

    Rows with an empty key or value are dropped; a repeated key keeps its
    last value.
    """

    mapping: dict[str, str] = {}
    for pair in pairs:
        if pair.is_complete():
            mapping[pair.key] = pair.value
    return mapping


def mapping_to_pairs(payload: Any) -> list[KeyValue]:
    if isinstance(payload, Mapping):
        return [KeyValue(str(key), "" if value is None else str(value)) for key, value in payload.items()]
    if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
        pairs: list[KeyValue] = []
        for item in payload:
            if isinstance(item, Mapping):
                pairs.append(KeyValue(str(item.get("key", "")), str(item.get("value", ""))))
        return pairs
    return []


@dataclass(slots=True, frozen=True)
class Cookie:
    """A cookie set by a response."""

    name: str
    value: str
    domain: str = ""
    path: str = ""
    expires: str | None = None
    secure: bool = False
    http_only: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "secure": self.secure,
            "httpOnly": self.http_only,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Cookie":
        expires = payload.get("expires")
        return cls(
            name=str(payload.get("name", "")),
            value=str(payload.get("value", "")),
            domain=str(payload.get("domain") or ""),
            path=str(payload.get("path") or ""),
            expires=str(expires) if expires else None,
            secure=bool(payload.get("secure", False)),
            http_only=bool(payload.get("httpOnly", False)),
        )


@dataclass(slots=True, frozen=True)
class HTTPRequest:
    """Payload handed to the HTTP executor."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    body: str = ""


@dataclass(slots=True)
class HTTPResponse:
    """Response captured by the HTTP executor.

    ``headers`` keeps every value of a repeated header; ``duration`` is in
    microseconds.
    """

    status_code: int
    status: str
    headers: dict[str, list[str]] = field(default_factory=dict)
    cookies: list[Cookie] = field(default_factory=list)
    body: str = ""
    size: int = 0
    duration: int = 0

    def content_type(self) -> str:
        for name, values in self.headers.items():
            if name.lower() == "content-type" and values:
                return values[0]
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "status": self.status,
            "headers": {name: list(values) for name, values in self.headers.items()},
            "cookies": [cookie.to_dict() for cookie in self.cookies],
            "body": self.body,
            "size": self.size,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "HTTPResponse":
        headers: dict[str, list[str]] = {}
        raw_headers = payload.get("headers") or {}
        if isinstance(raw_headers, Mapping):
            for name, values in raw_headers.items():
                if isinstance(values, str):
                    headers[str(name)] = [values]
                elif isinstance(values, Sequence):
                    headers[str(name)] = [str(value) for value in values]
        cookies = [
            Cookie.from_dict(item)
            for item in payload.get("cookies") or ()
            if isinstance(item, Mapping)
        ]
        return cls(
            status_code=int(payload.get("statusCode") or 0),
            status=str(payload.get("status") or ""),
            headers=headers,
            cookies=cookies,
            body=str(payload.get("body") or ""),
            size=int(payload.get("size") or 0),
            duration=int(payload.get("duration") or 0),
        )


@dataclass(slots=True)
class RequestDocument:
    """Persisted form of one request file."""

    name: str = ""
    description: str = ""
    method: str = DEFAULT_METHOD
    url: str = ""
    headers: list[KeyValue] = field(default_factory=list)
    query: list[KeyValue] = field(default_factory=list)
    body: str = ""
    body_type: BodyType = BodyType.NONE
    response: HTTPResponse | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def blank(cls, name: str) -> "RequestDocument":
        """Default content written for a freshly created request file."""

        now = _utcnow()
        return cls(name=name, created_at=now, updated_at=now)


@dataclass(slots=True)
class RequestDraft:
    """The editable, in-memory fields of the request being composed."""

    method: str = DEFAULT_METHOD
    url: str = ""
    headers: list[KeyValue] = field(default_factory=list)
    query: list[KeyValue] = field(default_factory=list)
    body: str = ""
    body_type: BodyType = BodyType.NONE
    response: HTTPResponse | None = None

    @classmethod
    def from_document(cls, document: RequestDocument) -> "RequestDraft":
        return cls(
            method=document.method,
            url=document.url,
            headers=list(document.headers),
            query=list(document.query),
            body=document.body,
            body_type=document.body_type,
            response=document.response,
        )

    def effective_body(self) -> str:
        return "" if self.body_type is BodyType.NONE else self.body

    def effective_headers(self) -> dict[str, str]:
        """Headers as they are sent and persisted, with the inferred Content-Type."""

        headers = pairs_to_mapping(self.headers)
        content_type = infer_content_type(self.body_type)
        if content_type is not None:
            for key in [key for key in headers if key.lower() == "content-type"]:
                del headers[key]
            headers["Content-Type"] = content_type
        return headers

    def effective_query(self) -> dict[str, str]:
        return pairs_to_mapping(self.query)

    def display_name(self) -> str:
        return f"{self.method}@{_SCHEME_PATTERN.sub('', self.url)}"

    def to_http_request(self) -> HTTPRequest:
        return HTTPRequest(
            method=self.method,
            url=self.url,
            headers=self.effective_headers(),
            query=self.effective_query(),
            body=self.effective_body(),
        )

    def to_document(
        self,
        *,
        created_at: datetime | None = None,
        description: str = "",
    ) -> RequestDocument:
        now = _utcnow()
        return RequestDocument(
            name=self.display_name(),
            description=description,
            method=self.method,
            url=self.url,
            headers=mapping_to_pairs(self.effective_headers()),
            query=mapping_to_pairs(self.effective_query()),
            body=self.effective_body(),
            body_type=self.body_type,
            response=self.response,
            created_at=created_at or now,
            updated_at=now,
        )

    def copy(self) -> "RequestDraft":
        return replace(self, headers=list(self.headers), query=list(self.query))


def serialize_document(document: RequestDocument) -> str:
    """Render ``document`` in the ``.postier`` JSON layout."""

    payload: dict[str, Any] = {
        "name": document.name,
        "description": document.description,
        "method": document.method,
        "url": document.url,
        "headers": pairs_to_mapping(document.headers),
        "body": document.body,
        "bodyType": document.body_type.value,
        "query": pairs_to_mapping(document.query),
        "createdAt": document.created_at.isoformat(),
        "updatedAt": document.updated_at.isoformat(),
    }
    if document.response is not None:
        payload["response"] = document.response.to_dict()
    return json.dumps(payload, indent=2)


def parse_document(text: str) -> RequestDocument:
    """Parse ``.postier`` JSON text.

    Raises:
        ValueError: If the text is not a JSON object.
    """

    payload = json.loads(text)
    if not isinstance(payload, Mapping):
        raise ValueError("Request file must contain a JSON object")
    response_payload = payload.get("response")
    response = HTTPResponse.from_dict(response_payload) if isinstance(response_payload, Mapping) else None
    return RequestDocument(
        name=str(payload.get("name") or ""),
        description=str(payload.get("description") or ""),
        method=str(payload.get("method") or DEFAULT_METHOD),
        url=str(payload.get("url") or ""),
        headers=mapping_to_pairs(payload.get("headers")),
        query=mapping_to_pairs(payload.get("query")),
        body=str(payload.get("body") or ""),
        body_type=BodyType.coerce(payload.get("bodyType")),
        response=response,
        created_at=_parse_timestamp(payload.get("createdAt")),
        updated_at=_parse_timestamp(payload.get("updatedAt")),
    )


def _parse_timestamp(value: Any) -> datetime:
    if not isinstance(value, str) or not value:
        return _utcnow()
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return _utcnow()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
