"""
Persistence for project cost tables.

Every closure creates a new version stored under its own key; a pointer
record names the current version. Edits (land value, monthly costs) rewrite
the current version in place, earlier versions are never touched.
"""

from __future__ import annotations

from typing import List, Optional

from src.domain.models import CostTable
from src.repositories.key_value_store import KeyValueStore, decode_record, encode_record

COST_TABLE_PREFIX = "cost-tables/"


def cost_table_key(project_id: str, version: int) -> str:
    return f"{COST_TABLE_PREFIX}{project_id}/versions/{version:06d}"


def current_pointer_key(project_id: str) -> str:
    return f"{COST_TABLE_PREFIX}{project_id}/current"


class CostTableRepository:
    """Versioned cost tables per project."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def current_version(self, project_id: str) -> Optional[int]:
        pointer = decode_record(self.store.get(current_pointer_key(project_id)))
        if pointer is None:
            return None
        return int(pointer["version"])

    def get(self, project_id: str) -> Optional[CostTable]:
        """Current version of the project's table."""
        version = self.current_version(project_id)
        if version is None:
            return None
        return self.get_version(project_id, version)

    def get_version(self, project_id: str, version: int) -> Optional[CostTable]:
        payload = decode_record(self.store.get(cost_table_key(project_id, version)))
        if payload is None:
            return None
        return CostTable.from_dict(payload)

    def list_versions(self, project_id: str) -> List[int]:
        prefix = f"{COST_TABLE_PREFIX}{project_id}/versions/"
        return [int(key[len(prefix):]) for key in self.store.keys(prefix)]

    def save(self, table: CostTable) -> None:
        """Write ``table`` at its version and move the pointer forward if needed."""
        self.store.put(cost_table_key(table.project_id, table.version), encode_record(table.to_dict()))
        current = self.current_version(table.project_id)
        if current is None or table.version >= current:
            self.store.put(
                current_pointer_key(table.project_id), encode_record({"version": table.version})
            )
