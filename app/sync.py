"""Diff pending edits against the stored snapshot and push the result.

Saving is best-effort: deletes, per-row updates and the bulk insert run in that
order, each attempted even when an earlier one failed, with no rollback. The
caller reloads the store afterwards whatever happened.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from assignments import ASSIGNMENTS_TABLE, AssignmentKey, AssignmentStore, Payload, encode_payload
from overlay import CLEAR, PendingEdits
from row_store import RowStore, StorageError

logger = logging.getLogger(__name__)

OP_DELETE = "delete"
OP_UPDATE = "update"
OP_INSERT = "insert"
OP_RELOAD = "reload"


@dataclass(frozen=True)
class PendingInsert:
    key: AssignmentKey
    payload: Payload


@dataclass(frozen=True)
class PendingUpdate:
    id: Any
    key: AssignmentKey
    payload: Payload


@dataclass(frozen=True)
class PendingDelete:
    id: Any
    key: AssignmentKey


@dataclass
class Changeset:
    to_insert: List[PendingInsert] = field(default_factory=list)
    to_update: List[PendingUpdate] = field(default_factory=list)
    to_delete: List[PendingDelete] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_update or self.to_delete)

    @property
    def delete_ids(self) -> List[Any]:
        return [entry.id for entry in self.to_delete]


@dataclass(frozen=True)
class OperationFailure:
    operation: str
    keys: List[AssignmentKey]
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "keys": [{"task_id": key.task_id, "parade_day": key.parade_day} for key in self.keys],
            "message": self.message,
        }


@dataclass
class SyncResult:
    deleted: int = 0
    updated: int = 0
    inserted: int = 0
    failures: List[OperationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def failed_keys(self) -> List[AssignmentKey]:
        keys: List[AssignmentKey] = []
        for failure in self.failures:
            keys.extend(key for key in failure.keys if key not in keys)
        return keys

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "deleted": self.deleted,
            "updated": self.updated,
            "inserted": self.inserted,
            "failures": [failure.as_dict() for failure in self.failures],
        }


def compile_changeset(edits: PendingEdits, store: AssignmentStore) -> Changeset:
    changeset = Changeset()
    for key, pending in edits.items():
        row_id = store.row_id(key)
        if pending is CLEAR:
            if row_id is not None:
                changeset.to_delete.append(PendingDelete(id=row_id, key=key))
        elif row_id is not None:
            changeset.to_update.append(PendingUpdate(id=row_id, key=key, payload=pending))
        else:
            changeset.to_insert.append(PendingInsert(key=key, payload=pending))
    return changeset


def apply_changeset(row_store: RowStore, site: str, changeset: Changeset) -> SyncResult:
    result = SyncResult()

    if changeset.to_delete:
        try:
            row_store.delete_by_ids(ASSIGNMENTS_TABLE, changeset.delete_ids)
            result.deleted = len(changeset.to_delete)
        except StorageError as exc:
            _record(result, OP_DELETE, [entry.key for entry in changeset.to_delete], exc)

    for entry in changeset.to_update:
        try:
            row_store.update(ASSIGNMENTS_TABLE, entry.id, encode_payload(entry.payload))
            result.updated += 1
        except StorageError as exc:
            _record(result, OP_UPDATE, [entry.key], exc)

    if changeset.to_insert:
        rows = [
            {
                "site": site,
                "item_id": entry.key.task_id,
                "parade_day": entry.key.parade_day,
                **encode_payload(entry.payload),
            }
            for entry in changeset.to_insert
        ]
        try:
            inserted = row_store.insert(ASSIGNMENTS_TABLE, rows)
            result.inserted = len(inserted)
        except StorageError as exc:
            _record(result, OP_INSERT, [entry.key for entry in changeset.to_insert], exc)

    return result


def _record(result: SyncResult, operation: str, keys: List[AssignmentKey], exc: StorageError) -> None:
    logger.warning("Assignment %s failed for %d cell(s): %s", operation, len(keys), exc)
    result.failures.append(OperationFailure(operation=operation, keys=list(keys), message=str(exc)))


def reload_failure(exc: StorageError) -> OperationFailure:
    logger.warning("Assignment reload failed: %s", exc)
    return OperationFailure(operation=OP_RELOAD, keys=[], message=str(exc))
