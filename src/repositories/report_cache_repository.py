"""
Display snapshots of period reports.

Snapshots are a convenience copy only; the report service can regenerate any
of them from ledger history at any time.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from src.repositories.key_value_store import KeyValueStore, decode_record, encode_record

REPORT_PREFIX = "reports/"
EXTRAS_PREFIX = "report-extras/"


def report_key(month: int, year: int, company_id: Optional[str] = None) -> str:
    scope = company_id or "all"
    return f"{REPORT_PREFIX}{year:04d}-{month:02d}/{scope}"


def extras_key(month: int, year: int, company_id: Optional[str] = None) -> str:
    scope = company_id or "all"
    return f"{EXTRAS_PREFIX}{year:04d}-{month:02d}/{scope}"


class ReportCacheRepository:
    """Stores the last generated report and its extra revenue lines per competency and scope."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def save(self, month: int, year: int, payload: Dict[str, Any], company_id: Optional[str] = None) -> None:
        self.store.put(report_key(month, year, company_id), encode_record(payload))

    def load(self, month: int, year: int, company_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return decode_record(self.store.get(report_key(month, year, company_id)))

    def save_extras(self, month: int, year: int, lines: List[Dict[str, Any]], company_id: Optional[str] = None) -> None:
        self.store.put(extras_key(month, year, company_id), encode_record(lines))

    def load_extras(self, month: int, year: int, company_id: Optional[str] = None) -> Optional[List[Dict[str, Any]]]:
        return decode_record(self.store.get(extras_key(month, year, company_id)))
