"""Repository package exports."""

from .cost_table_repository import CostTableRepository
from .installment_repository import InstallmentRepository
from .key_value_store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore, StoreError
from .ledger_repository import LedgerRepository, LedgerSnapshot
from .project_repository import ProjectInfo, ProjectRepository
from .report_cache_repository import ReportCacheRepository

__all__ = [
    "CostTableRepository",
    "InstallmentRepository",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "StoreError",
    "LedgerRepository",
    "LedgerSnapshot",
    "ProjectInfo",
    "ProjectRepository",
    "ReportCacheRepository",
]
