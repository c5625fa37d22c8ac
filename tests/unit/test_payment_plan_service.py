"""
Unit tests for payment plan generation and storage.
"""

from __future__ import annotations

import itertools
from datetime import date
from decimal import Decimal

import pytest

from src.domain.errors import InvalidAmount, InvalidDate, InvalidInstallmentType, PaymentPlanMismatch, PlanLocked
from src.domain.models import InstallmentType
from src.repositories.installment_repository import InstallmentRepository
from src.repositories.key_value_store import InMemoryKeyValueStore
from src.services.payment_plan_service import (
    PaymentPlanItem,
    PaymentPlanService,
    generate_installments,
)
from src.services.settlement_service import SettlementService


def _ids():
    counter = itertools.count(1)
    return lambda: f"inst-{next(counter)}"


class TestGenerateInstallments:
    def test_monthly_keeps_day_and_clamps_short_months(self) -> None:
        installments = generate_installments(
            "OB1", "0101", [PaymentPlanItem("Mensal", "31/01/2025", 4, "100.00")], id_factory=_ids()
        )

        assert [inst.due_date for inst in installments] == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
        ]

    @pytest.mark.parametrize(
        "type_, expected",
        [
            ("Semestral", [date(2025, 3, 15), date(2025, 9, 15), date(2026, 3, 15)]),
            ("Anual", [date(2025, 3, 15), date(2026, 3, 15), date(2027, 3, 15)]),
            ("Financiamento", [date(2025, 3, 15)] * 3),
        ],
    )
    def test_steps_per_type(self, type_: str, expected) -> None:
        installments = generate_installments(
            "OB1", "0101", [PaymentPlanItem(type_, "15/03/2025", 3, "10.00")], id_factory=_ids()
        )

        assert [inst.due_date for inst in installments] == expected

    def test_items_are_merged_in_due_date_order(self) -> None:
        items = [
            PaymentPlanItem(InstallmentType.MENSAL, "10/02/2025", 2, "1.000,00"),
            PaymentPlanItem(InstallmentType.ENTRADA, "05/01/2025", 1, "5000"),
        ]

        installments = generate_installments("OB1", "0101", items, id_factory=_ids())

        assert [inst.type for inst in installments] == [
            InstallmentType.ENTRADA,
            InstallmentType.MENSAL,
            InstallmentType.MENSAL,
        ]
        assert installments[1].expected_amount == Decimal("1000.00")
        assert {inst.unit_id for inst in installments} == {"0101"}

    @pytest.mark.parametrize(
        "item, error",
        [
            (PaymentPlanItem("Mensal", "10/02/2025", 0, "10.00"), InvalidAmount),
            (PaymentPlanItem("Mensal", "10/02/2025", 1, "0"), InvalidAmount),
            (PaymentPlanItem("Mensal", "2025/02/10", 1, "10.00"), InvalidDate),
            (PaymentPlanItem("Trimestral", "10/02/2025", 1, "10.00"), InvalidInstallmentType),
        ],
    )
    def test_invalid_items(self, item: PaymentPlanItem, error) -> None:
        with pytest.raises(error):
            generate_installments("OB1", "0101", [item])

    def test_empty_plan(self) -> None:
        with pytest.raises(ValueError):
            generate_installments("OB1", "0101", [])


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


class TestPaymentPlanService:
    def test_total_must_match_sale_price(self, store: InMemoryKeyValueStore) -> None:
        service = PaymentPlanService(store, tolerance=Decimal("0.01"))
        items = [PaymentPlanItem("Mensal", "10/02/2025", 3, "333.33")]

        assert len(service.build_plan("OB1", "0101", "1000.00", items)) == 3
        with pytest.raises(PaymentPlanMismatch):
            service.build_plan("OB1", "0101", "1000.02", items)

    def test_saved_plan_is_registered(self, store: InMemoryKeyValueStore) -> None:
        service = PaymentPlanService(store)
        installments = service.save_plan(
            "OB1", "0101", "1500.00", [PaymentPlanItem("Mensal", "10/02/2025", 3, "500.00")]
        )

        repository = InstallmentRepository(store)
        assert repository.list_for_unit("OB1", "0101") == installments
        assert repository.locate(installments[0].id) == ("OB1", "0101")

    def test_plan_can_be_replaced_before_any_settlement(self, store: InMemoryKeyValueStore) -> None:
        service = PaymentPlanService(store)
        first = service.save_plan("OB1", "0101", "1000.00", [PaymentPlanItem("Única", "10/02/2025", 1, "1000.00")])

        second = service.save_plan("OB1", "0101", "1000.00", [PaymentPlanItem("Mensal", "10/02/2025", 2, "500.00")])

        repository = InstallmentRepository(store)
        assert repository.find(first[0].id) is None
        assert [inst.id for inst in repository.list_for_unit("OB1", "0101")] == [i.id for i in second]

    def test_plan_is_locked_after_settlement(self, store: InMemoryKeyValueStore) -> None:
        service = PaymentPlanService(store)
        installments = service.save_plan(
            "OB1", "0101", "1000.00", [PaymentPlanItem("Mensal", "10/02/2025", 2, "500.00")]
        )
        SettlementService(store).settle_one(installments[0].id, Decimal("500.00"), "10/02/2025")

        with pytest.raises(PlanLocked):
            service.save_plan("OB1", "0101", "1000.00", [PaymentPlanItem("Única", "10/02/2025", 1, "1000.00")])

        assert InstallmentRepository(store).list_for_unit("OB1", "0101") == installments
