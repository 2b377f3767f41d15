"""Decides whether the request being edited differs from what is on disk."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Iterable

from ...editor.request_model import (
    BodyType,
    HTTPResponse,
    KeyValue,
    RequestDocument,
    RequestDraft,
    infer_content_type,
)

__all__ = ["ComparableRequest", "normalize", "changed_fields", "is_dirty"]


@dataclass(slots=True, frozen=True)
class ComparableRequest:
    """A request reduced to the fields the editor compares, rows sorted."""

    method: str
    url: str
    headers: tuple[tuple[str, str], ...]
    query: tuple[tuple[str, str], ...]
    body: str
    body_type: BodyType
    response: HTTPResponse | None


def normalize(request: RequestDraft | RequestDocument) -> ComparableRequest:
    draft = request if isinstance(request, RequestDraft) else RequestDraft.from_document(request)
    return ComparableRequest(
        method=draft.method,
        url=draft.url,
        headers=_sorted_rows(_with_content_type(draft.headers, draft.body_type)),
        query=_sorted_rows(draft.query),
        body=draft.body,
        body_type=draft.body_type,
        response=draft.response,
    )


def changed_fields(current: RequestDraft, persisted: RequestDocument | None) -> list[str]:
    """Return the names of the fields that differ, in declaration order."""

    if persisted is None:
        return []
    left = normalize(current)
    right = normalize(persisted)
    return [item.name for item in fields(ComparableRequest) if getattr(left, item.name) != getattr(right, item.name)]


def is_dirty(current: RequestDraft, persisted: RequestDocument | None) -> bool:
    """``True`` when ``current`` differs from ``persisted``.

    Header and query rows are compared one by one after sorting, so an extra
    row, even a blank or repeated one, counts as a change. An unattached
    draft (no persisted counterpart) is never dirty.
    """

    return bool(changed_fields(current, persisted))


def _with_content_type(rows: Iterable[KeyValue], body_type: BodyType) -> list[KeyValue]:
    content_type = infer_content_type(body_type)
    if content_type is None:
        return list(rows)
    kept = [row for row in rows if row.key.lower() != "content-type"]
    kept.append(KeyValue("Content-Type", content_type))
    return kept


def _sorted_rows(rows: Iterable[KeyValue]) -> tuple[tuple[str, str], ...]:
    return tuple(row.sort_key() for row in sorted(rows, key=KeyValue.sort_key))
