"""
Append-only audit trail of admin mutations.

Every create/update/delete of a restaurant is recorded as a BackupEntry with
a full snapshot of the entity (and its pre-image for updates and deletes).
Entries live in the local key-value store, next to the credentials.
Recording is best-effort: a failure is logged and never interrupts the
mutation it describes.
"""
import copy
import json
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ValidationError

from ..models import BackupEntry, Restaurant, now_ms
from ..store.local import LocalStore
from .changes import diff, summarize

logger = logging.getLogger(__name__)

BACKUPS_KEY = "admin-backups"
DAY_MS = 24 * 60 * 60 * 1000


def snapshot(entity: Any) -> Optional[dict]:
    """Deep, JSON-ready copy of an entity"""
    if entity is None:
        return None
    if isinstance(entity, BaseModel):
        return entity.model_dump(mode="json", by_alias=True, exclude_none=True)
    return copy.deepcopy(dict(entity))


class BackupRecorder:
    """Records and queries backup entries"""

    def __init__(self, local: LocalStore, key: str = BACKUPS_KEY):
        self.local = local
        self.key = key

    def _load_raw(self) -> List[dict]:
        raw = self.local.get(self.key, [])
        if not isinstance(raw, list):
            logger.warning("Backup list under %r is not a list, starting a new one", self.key)
            return []
        return raw

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        entity_name: str,
        data: Any,
        previous_data: Any = None,
    ) -> Optional[BackupEntry]:
        """
        Append an entry for one mutation.

        Field changes are only computed for updates, where both snapshots
        are available.

        Returns:
            The stored entry, or None if recording failed
        """
        try:
            changes = []
            if action == "update" and previous_data is not None:
                changes = diff(previous_data, data)

            entry = BackupEntry(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                entity_name=entity_name,
                data=snapshot(data),
                previous_data=snapshot(previous_data),
                changes=changes,
                changes_summary=summarize(action, changes, entity_name),
            )

            entries = self._load_raw()
            entries.append(entry.to_document())
            self.local.set(self.key, entries)

            logger.info("Backup created: %s %s %r (%s)", action, entity_type, entity_name, entry.changes_summary)
            return entry
        except Exception:
            logger.exception("Failed to create backup for %s %s %r", action, entity_type, entity_name)
            return None

    def list_all(self) -> List[BackupEntry]:
        """All readable entries, oldest first"""
        entries = []
        for raw in self._load_raw():
            try:
                entries.append(BackupEntry.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping unreadable backup entry: %s", e)
        return entries

    def latest_for(self, entity_id: str) -> Optional[BackupEntry]:
        """Most recent entry for an entity (later entries win timestamp ties)"""
        candidates = [
            (entry.timestamp, index, entry)
            for index, entry in enumerate(self.list_all())
            if entry.entity_id == entity_id
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda c: (c[0], c[1]))[2]

    def purge_older_than(self, days: float) -> int:
        """
        Drop entries older than ``days``.

        Returns:
            Number of entries removed
        """
        cutoff = now_ms() - int(days * DAY_MS)
        entries = self._load_raw()
        kept = [e for e in entries if isinstance(e, dict) and e.get("timestamp", 0) > cutoff]
        self.local.set(self.key, kept)
        removed = len(entries) - len(kept)
        logger.info("Purged %d backup entries older than %s days", removed, days)
        return removed

    def export_json(self) -> str:
        return json.dumps(self._load_raw(), indent=2, ensure_ascii=False)

    def restore(self, entry: BackupEntry) -> Restaurant:
        """Restaurant as captured in ``entry`` (a fresh copy)"""
        if entry.data is None:
            raise ValueError(f"Backup entry for {entry.entity_id} has no snapshot")
        return Restaurant.model_validate(copy.deepcopy(entry.data))
