"""
Payment plan generation for sold units.

A plan is described by items (type, first due date, quantity, amount) and
expanded into the unit's installments. Plans can be replaced only while the
unit ledger is still empty.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Optional, Union

from src.core.config import Config
from src.domain.errors import InvalidAmount, PaymentPlanMismatch, PlanLocked
from src.domain.models import Installment, InstallmentType
from src.domain.money import MoneyLike, ZERO, positive_amount
from src.repositories.installment_repository import InstallmentRepository, sort_by_due_date
from src.repositories.key_value_store import KeyValueStore
from src.repositories.ledger_repository import LedgerRepository
from src.utils.datetime_helpers import DateLike, add_months_keep_day, parse_date
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class PaymentPlanItem:
    """One line of a payment plan, e.g. 36 x Mensal of 1.500,00 from 10/02/2025."""

    type: Union[InstallmentType, str]
    first_due_date: DateLike
    quantity: int
    amount: MoneyLike


def _new_id() -> str:
    return str(uuid.uuid4())


def generate_installments(
    project_id: str,
    unit_id: str,
    items: List[PaymentPlanItem],
    id_factory: Callable[[], str] = _new_id,
) -> List[Installment]:
    """
    Expand plan items into installments sorted by due date.

    Mensal, Semestral and Anual step 1, 6 and 12 months from the first due
    date, clamping the day to the end of shorter months; other types repeat
    the first due date.

    Raises:
        InvalidAmount: If an amount or quantity is not positive
        InvalidDate: If a first due date is unparseable
        InvalidInstallmentType: If a type is unknown
        ValueError: If there are no items
    """
    if not items:
        raise ValueError("A payment plan needs at least one item")

    installments: List[Installment] = []
    for item in items:
        installment_type = InstallmentType.parse(item.type)
        first_due = parse_date(item.first_due_date)
        amount = positive_amount(item.amount)
        if int(item.quantity) <= 0:
            raise InvalidAmount(f"Quantity must be greater than zero, got {item.quantity}")

        step = installment_type.month_step
        for position in range(int(item.quantity)):
            installments.append(
                Installment(
                    id=id_factory(),
                    project_id=project_id,
                    unit_id=unit_id,
                    type=installment_type,
                    due_date=add_months_keep_day(first_due, position * step),
                    expected_amount=amount,
                )
            )
    return sort_by_due_date(installments)


def plan_total(installments: List[Installment]) -> Decimal:
    return sum((inst.expected_amount for inst in installments), ZERO)


class PaymentPlanService:
    """Generates, validates and stores unit payment plans."""

    def __init__(self, store: KeyValueStore, tolerance: Optional[Decimal] = None) -> None:
        self.installments = InstallmentRepository(store)
        self.ledger = LedgerRepository(store)
        self.tolerance = Config.PAYMENT_PLAN_TOLERANCE if tolerance is None else tolerance

    def build_plan(
        self,
        project_id: str,
        unit_id: str,
        sale_price: MoneyLike,
        items: List[PaymentPlanItem],
    ) -> List[Installment]:
        """
        Generate installments and check they add up to the sale price.

        Raises:
            PaymentPlanMismatch: If the total differs by more than the tolerance
        """
        price = positive_amount(sale_price)
        installments = generate_installments(project_id, unit_id, items)
        total = plan_total(installments)
        if abs(total - price) > self.tolerance:
            logger.warning(
                "payment_plan_mismatch",
                project_id=project_id,
                unit_id=unit_id,
                plan_total=str(total),
                sale_price=str(price),
            )
            raise PaymentPlanMismatch(
                f"Plan total {total} does not match sale price {price}"
            )
        return installments

    def save_plan(
        self,
        project_id: str,
        unit_id: str,
        sale_price: MoneyLike,
        items: List[PaymentPlanItem],
    ) -> List[Installment]:
        """
        Build and store the plan of a unit, replacing any previous plan.

        Raises:
            PlanLocked: If the unit ledger already has entries
        """
        installments = self.build_plan(project_id, unit_id, sale_price, items)
        if self.ledger.snapshot(project_id, unit_id).entries:
            raise PlanLocked(
                f"Unit {project_id}/{unit_id} has settlements; its plan cannot be replaced"
            )

        self.installments.save_unit_plan(project_id, unit_id, installments)
        logger.info(
            "payment_plan_saved",
            project_id=project_id,
            unit_id=unit_id,
            installments=len(installments),
            total=str(plan_total(installments)),
        )
        return installments
