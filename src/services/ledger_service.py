"""
Settlement Ledger status derivation and history views.

Status is never stored: every figure here is recomputed from the append-only
ledger entries of an installment.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from src.domain.models import (
    EntryKind,
    Installment,
    InstallmentStatus,
    LedgerEntry,
    StatusSnapshot,
    UnitSaleStatus,
)
from src.domain.money import ZERO, quantize_currency
from src.repositories.installment_repository import InstallmentRepository
from src.repositories.key_value_store import KeyValueStore
from src.repositories.ledger_repository import LedgerRepository, LedgerSnapshot
from src.services.settlement_constants import CURRENCY_EPSILON
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


def sum_entries(entries: Iterable[LedgerEntry], kind: Optional[EntryKind] = None) -> Decimal:
    total = sum(
        (entry.amount for entry in entries if kind is None or entry.kind is kind), ZERO
    )
    return quantize_currency(total)


def derive_status(installment: Installment, entries: Iterable[LedgerEntry]) -> StatusSnapshot:
    """
    Compute the status of an installment from its ledger entries.

    Entries of other installments are ignored, so a whole unit ledger can be
    passed in.
    """
    own = [e for e in entries if e.installment_id == installment.id]
    expected = quantize_currency(installment.expected_amount)
    received = sum_entries(own, EntryKind.PAGAMENTO)
    discount = sum_entries(own, EntryKind.DESCONTO)
    settled = received + discount

    if settled == ZERO:
        state = InstallmentStatus.ABERTA
    elif settled >= expected - CURRENCY_EPSILON:
        state = InstallmentStatus.QUITADA
    else:
        state = InstallmentStatus.PARCIAL

    if state is InstallmentStatus.QUITADA:
        variance = received - expected
        settled_variance = settled - expected
    else:
        variance = ZERO
        settled_variance = ZERO

    return StatusSnapshot(
        installment_id=installment.id,
        state=state,
        expected=expected,
        received=received,
        discount=discount,
        variance=variance,
        settled_variance=settled_variance,
    )


def sale_status(statuses: List[StatusSnapshot]) -> UnitSaleStatus:
    """DISPONIVEL without a plan, QUITADO when every installment is QUITADA."""
    if not statuses:
        return UnitSaleStatus.DISPONIVEL
    if all(s.state is InstallmentStatus.QUITADA for s in statuses):
        return UnitSaleStatus.QUITADO
    return UnitSaleStatus.VENDIDO


@dataclass(frozen=True)
class InstallmentView:
    """An installment with its derived status."""

    installment: Installment
    status: StatusSnapshot


class LedgerService:
    """Read-side of the ledger: statuses and history."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.installments = InstallmentRepository(store)
        self.ledger = LedgerRepository(store)

    def status(self, installment_id: str) -> StatusSnapshot:
        """
        Derived status of one installment.

        Raises:
            UnknownInstallment: If the id is not registered.
        """
        installment = self.installments.get(installment_id)
        snapshot = self.ledger.snapshot(installment.project_id, installment.unit_id)
        return derive_status(installment, snapshot.entries)

    def unit_statuses(self, project_id: str, unit_id: str) -> List[InstallmentView]:
        """Every installment of a unit with its status, by due date."""
        snapshot = self.ledger.snapshot(project_id, unit_id)
        return self.views_from_snapshot(
            self.installments.list_for_unit(project_id, unit_id), snapshot
        )

    @staticmethod
    def views_from_snapshot(
        installments: List[Installment], snapshot: LedgerSnapshot
    ) -> List[InstallmentView]:
        grouped = snapshot.by_installment()
        return [
            InstallmentView(inst, derive_status(inst, grouped.get(inst.id, [])))
            for inst in installments
        ]

    def is_unit_settled(self, project_id: str, unit_id: str) -> bool:
        """True when the unit has installments and all of them are QUITADA."""
        return self.unit_sale_status(project_id, unit_id) is UnitSaleStatus.QUITADO

    def unit_sale_status(self, project_id: str, unit_id: str) -> UnitSaleStatus:
        return sale_status([view.status for view in self.unit_statuses(project_id, unit_id)])

    def installment_history(self, installment_id: str) -> List[LedgerEntry]:
        project_id, unit_id = self.installments.locate(installment_id)
        return self.ledger.snapshot(project_id, unit_id).for_installment(installment_id)

    def unit_history(self, project_id: str, unit_id: str) -> List[LedgerEntry]:
        return list(self.ledger.snapshot(project_id, unit_id).entries)

    def batch_history(self, batch_id: str) -> List[LedgerEntry]:
        """Entries written by one settlement call, in ledger order."""
        for project_id, unit_id in self.ledger.list_units():
            entries = [
                e
                for e in self.ledger.snapshot(project_id, unit_id).entries
                if e.batch_id == batch_id
            ]
            if entries:
                return entries
        logger.info("batch_not_found", batch_id=batch_id)
        return []
