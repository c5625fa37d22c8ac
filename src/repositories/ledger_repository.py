"""
Append-only settlement ledger persistence.

Each unit owns one ledger record holding every entry of every installment of
that unit. A settlement batch is appended with a single compare-and-put
against the snapshot it was planned from, so a batch is either fully written
or not written at all.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from src.domain.errors import LedgerConflict
from src.domain.models import LedgerEntry
from src.repositories.key_value_store import KeyValueStore, decode_record, encode_record
from src.utils.datetime_helpers import utc_now_iso
from src.utils.logging_config import get_logger


logger = get_logger(__name__)

LEDGER_PREFIX = "ledger/"


def unit_ledger_key(project_id: str, unit_id: str) -> str:
    return f"{LEDGER_PREFIX}{project_id}/{unit_id}"


@dataclass(frozen=True)
class LedgerSnapshot:
    """Entries of one unit as read at ``version``."""

    project_id: str
    unit_id: str
    version: int
    entries: List[LedgerEntry]
    raw: Optional[bytes] = None

    def for_installment(self, installment_id: str) -> List[LedgerEntry]:
        return [e for e in self.entries if e.installment_id == installment_id]

    def by_installment(self) -> Dict[str, List[LedgerEntry]]:
        grouped: Dict[str, List[LedgerEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.installment_id, []).append(entry)
        return grouped


class LedgerRepository:
    """Reads ledger snapshots and appends settlement batches."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def snapshot(self, project_id: str, unit_id: str) -> LedgerSnapshot:
        raw = self.store.get(unit_ledger_key(project_id, unit_id))
        payload = decode_record(raw, default={"version": 0, "entries": []})
        return LedgerSnapshot(
            project_id=project_id,
            unit_id=unit_id,
            version=int(payload["version"]),
            entries=[LedgerEntry.from_dict(item) for item in payload["entries"]],
            raw=raw,
        )

    def append_batch(
        self, snapshot: LedgerSnapshot, entries: List[LedgerEntry]
    ) -> List[LedgerEntry]:
        """
        Append entries on top of ``snapshot``.

        Ids, createdAt timestamps and sequence numbers are assigned here.

        Raises:
            LedgerConflict: If the stored ledger moved past the snapshot.
        """
        key = unit_ledger_key(snapshot.project_id, snapshot.unit_id)
        created_at = utc_now_iso()
        next_sequence = snapshot.entries[-1].sequence + 1 if snapshot.entries else 1
        stamped = [
            replace(
                entry,
                id=entry.id or str(uuid.uuid4()),
                created_at=created_at,
                sequence=next_sequence + offset,
            )
            for offset, entry in enumerate(entries)
        ]

        payload = self._payload(snapshot.version + 1, snapshot.entries + stamped)
        if not self.store.compare_and_put(key, snapshot.raw, encode_record(payload)):
            logger.warning(
                "ledger_conflict",
                project_id=snapshot.project_id,
                unit_id=snapshot.unit_id,
                snapshot_version=snapshot.version,
            )
            raise LedgerConflict(
                f"Ledger of unit {snapshot.project_id}/{snapshot.unit_id} changed since it was read"
            )
        return stamped

    def list_units(self) -> List[tuple]:
        refs = []
        for key in self.store.keys(LEDGER_PREFIX):
            project_id, _, unit_id = key[len(LEDGER_PREFIX):].partition("/")
            refs.append((project_id, unit_id))
        return refs

    @staticmethod
    def _payload(version: int, entries: List[LedgerEntry]) -> dict:
        return {"version": version, "entries": [entry.to_dict() for entry in entries]}
