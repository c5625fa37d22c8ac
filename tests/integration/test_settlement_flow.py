"""
End-to-end flow on a SQLite file: cost table, payment plan, settlements and
the monthly report, including the report job and concurrent writers.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from src.core.database import initialize_database
from src.domain.errors import LedgerConflict
from src.domain.models import EntryKind, InstallmentStatus, InstallmentType, LedgerEntry, UnitSaleStatus
from src.jobs.generate_period_report import generate_report
from src.repositories.key_value_store import SQLiteKeyValueStore
from src.repositories.ledger_repository import LedgerRepository
from src.repositories.project_repository import ProjectInfo, ProjectRepository
from src.services.cost_table_service import CostTableService
from src.services.ledger_service import LedgerService
from src.services.payment_plan_service import PaymentPlanItem, PaymentPlanService
from src.services.period_report_service import PeriodReportService
from src.services.settlement_service import SettlementService


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "settlement.db")


@pytest.fixture
def store(db_path: str):
    """Keyed store on a fresh SQLite file."""
    conn = initialize_database(db_path)
    yield SQLiteKeyValueStore(conn)
    conn.close()


@pytest.fixture
def sold_unit(store: SQLiteKeyValueStore):
    """Project OB1 (company C1) with unit 0101 sold for 3000.00."""
    ProjectRepository(store).register(ProjectInfo(project_id="OB1", company_id="C1", name="Residencial Aurora"))
    return PaymentPlanService(store).save_plan(
        "OB1",
        "0101",
        "3.000,00",
        [
            PaymentPlanItem(InstallmentType.ENTRADA, "05/01/2025", 1, "1000.00"),
            PaymentPlanItem(InstallmentType.MENSAL, "10/02/2025", 2, "1000.00"),
        ],
    )


def test_cost_table_split(store: SQLiteKeyValueStore) -> None:
    service = CostTableService(store)
    service.close_table("OB1", [("0101", "0,6"), ("0102", "0,4")])
    service.set_land_value("OB1", "1000.00")
    service.add_monthly_cost("OB1", "01/2025", "333.33")

    rows = service.allocation("OB1")

    assert [(r.unit_id, r.land, r.monthly["01/2025"]) for r in rows] == [
        ("0101", Decimal("600.00"), Decimal("200.00")),
        ("0102", Decimal("400.00"), Decimal("133.33")),
    ]


def test_sale_settled_over_two_months(store: SQLiteKeyValueStore, sold_unit, db_path: str) -> None:
    settlement = SettlementService(store)
    ledger = LedgerService(store)
    entrada = sold_unit[0]

    settlement.settle_one(entrada.id, "1000.00", "05/01/2025")
    assert ledger.status(entrada.id).state is InstallmentStatus.QUITADA
    assert ledger.unit_sale_status("OB1", "0101") is UnitSaleStatus.VENDIDO

    batch = settlement.settle_unit("OB1", "0101", "2000.00", "20/02/2025", confirm=True, confirm_again=True)

    assert batch.batch_id.startswith("QUITAR-")
    assert batch.total_paid == Decimal("2000.00")
    assert ledger.is_unit_settled("OB1", "0101")
    assert [e.batch_id for e in ledger.batch_history(batch.batch_id)] == [batch.batch_id] * 2
    assert [e.sequence for e in ledger.unit_history("OB1", "0101")] == [1, 2, 3]

    reports = PeriodReportService(store, cache_enabled=True)
    assert reports.report(1, 2025).total.recebido == Decimal("1000.00")
    february = reports.report(2, 2025)
    assert february.total.previsto == Decimal("2000.00")
    assert february.total.recebido == Decimal("2000.00")
    assert all(row.balances for row in february.rows)

    from_job = generate_report("02/2025", company_id="C1", db_path=db_path)
    assert [r.to_dict() for r in from_job.rows] == [r.to_dict() for r in february.rows]
    assert generate_report("02/2025", company_id="C2", db_path=db_path).unit_rows() == []


def test_writer_on_a_stale_snapshot_is_rejected(store: SQLiteKeyValueStore, sold_unit, db_path: str) -> None:
    other_conn = initialize_database(db_path)
    try:
        other_store = SQLiteKeyValueStore(other_conn)
        stale = LedgerRepository(store).snapshot("OB1", "0101")

        SettlementService(other_store).settle_one(sold_unit[0].id, "1000.00", date(2025, 1, 5))

        entry = LedgerEntry(
            id="",
            installment_id=sold_unit[0].id,
            amount=Decimal("1000.00"),
            event_date=date(2025, 1, 5),
            kind=EntryKind.PAGAMENTO,
            batch_id="PARCELA-stale",
        )
        with pytest.raises(LedgerConflict):
            LedgerRepository(store).append_batch(stale, [entry])
    finally:
        other_conn.close()

    assert len(LedgerRepository(store).snapshot("OB1", "0101").entries) == 1
