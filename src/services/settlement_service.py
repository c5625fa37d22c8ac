"""
Settlement Orchestrator - plan and commit installment settlements.

Each entry point has a pure planner working on a ledger snapshot and a thin
service method that commits the planned entries in one write. Previews run
the same planners without writing.

Implements:
- Single installment settlement, optionally closing the gap with a discount
- Lot settlement of installments of one type (normal and discount modes)
- Whole-unit settlement behind a double confirmation
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from src.domain.errors import (
    AlreadySettled,
    ConfirmationRequired,
    InsufficientCandidates,
    NoSettlableInstallment,
)
from src.domain.models import (
    EntryKind,
    Installment,
    InstallmentStatus,
    InstallmentType,
    LedgerEntry,
)
from src.domain.money import MoneyLike, ZERO, positive_amount, quantize_currency
from src.repositories.installment_repository import InstallmentRepository, sort_by_due_date
from src.repositories.key_value_store import KeyValueStore, StoreError
from src.repositories.ledger_repository import LedgerRepository, LedgerSnapshot
from src.services.ledger_service import derive_status
from src.services.settlement_constants import (
    LOT_BATCH_PREFIX,
    SINGLE_BATCH_PREFIX,
    UNIT_BATCH_PREFIX,
)
from src.utils.datetime_helpers import DateLike, parse_date
from src.utils.logging_config import get_logger


logger = get_logger(__name__)


class SettlementCommitError(Exception):
    """Raised when a planned settlement cannot be written to the store."""

    pass


@dataclass
class SettlementPlan:
    """
    Entries a settlement would write, plus the figures shown before confirming.

    Attributes:
        amount_to_close: Outstanding balance of the installments touched
        received: Cash amount of the settlement
        discount: Total DESCONTO planned
        surplus: Cash above the outstanding balance, booked on the last
            installment touched
    """

    batch_id: str
    project_id: str
    unit_id: str
    entries: List[LedgerEntry] = field(default_factory=list)
    amount_to_close: Decimal = ZERO
    received: Decimal = ZERO
    discount: Decimal = ZERO
    surplus: Decimal = ZERO

    @property
    def installment_ids(self) -> List[str]:
        seen: List[str] = []
        for entry in self.entries:
            if entry.installment_id not in seen:
                seen.append(entry.installment_id)
        return seen


@dataclass
class SettlementBatch:
    """Entries committed by one settlement call."""

    batch_id: str
    project_id: str
    unit_id: str
    entries: List[LedgerEntry]

    @property
    def total_paid(self) -> Decimal:
        return sum((e.amount for e in self.entries if e.kind is EntryKind.PAGAMENTO), ZERO)

    @property
    def total_discount(self) -> Decimal:
        return sum((e.amount for e in self.entries if e.kind is EntryKind.DESCONTO), ZERO)


def new_batch_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4()}"


def _entry(installment: Installment, amount: Decimal, event_date: date, kind: EntryKind, batch_id: str) -> LedgerEntry:
    return LedgerEntry(
        id="",
        installment_id=installment.id,
        amount=amount,
        event_date=event_date,
        kind=kind,
        batch_id=batch_id,
    )


def open_candidates(
    installments: List[Installment],
    snapshot: LedgerSnapshot,
    installment_type: Optional[InstallmentType] = None,
) -> List[Tuple[Installment, Decimal]]:
    """ABERTA/PARCIAL installments with their outstanding balance, by due date then id."""
    grouped = snapshot.by_installment()
    candidates = []
    for installment in sort_by_due_date(installments):
        if installment_type is not None and installment.type is not installment_type:
            continue
        status = derive_status(installment, grouped.get(installment.id, []))
        if status.is_open:
            candidates.append((installment, status.outstanding))
    return candidates


def _pay_and_discount(
    plan: SettlementPlan,
    candidates: List[Tuple[Installment, Decimal]],
    total: Decimal,
    event_date: date,
    stop_when_short: bool = False,
) -> None:
    """
    Pay each candidate what the remaining amount covers and discount the rest.

    With ``stop_when_short`` nothing after the first candidate that could not
    be fully covered is touched. Any leftover becomes an extra PAGAMENTO on
    the last installment touched.
    """
    remaining = total
    last: Optional[Installment] = None

    for installment, outstanding in candidates:
        paid = min(remaining, outstanding)
        if paid > ZERO:
            plan.entries.append(_entry(installment, paid, event_date, EntryKind.PAGAMENTO, plan.batch_id))
            remaining -= paid
        gap = outstanding - paid
        if gap > ZERO:
            plan.entries.append(_entry(installment, gap, event_date, EntryKind.DESCONTO, plan.batch_id))
            plan.discount += gap
        plan.amount_to_close += outstanding
        last = installment
        if stop_when_short and gap > ZERO:
            break

    if remaining > ZERO and last is not None:
        plan.entries.append(_entry(last, remaining, event_date, EntryKind.PAGAMENTO, plan.batch_id))
        plan.surplus = remaining


def plan_settle_one(
    installment: Installment,
    snapshot: LedgerSnapshot,
    amount: MoneyLike,
    event_date: DateLike,
    with_discount: bool = False,
    confirm_resettle: bool = False,
    batch_id: Optional[str] = None,
) -> SettlementPlan:
    """
    Plan one PAGAMENTO on an installment.

    With ``with_discount`` a DESCONTO closes whatever is still missing.

    Raises:
        InvalidAmount: If the amount is not positive
        InvalidDate: If the date is unparseable
        AlreadySettled: If the installment is QUITADA and re-settling was
            not confirmed
    """
    amount = positive_amount(amount)
    when = parse_date(event_date)
    status = derive_status(installment, snapshot.for_installment(installment.id))
    if status.state is InstallmentStatus.QUITADA and not confirm_resettle:
        raise AlreadySettled(f"Installment {installment.id} is already settled")

    plan = SettlementPlan(
        batch_id=batch_id or new_batch_id(SINGLE_BATCH_PREFIX),
        project_id=installment.project_id,
        unit_id=installment.unit_id,
        amount_to_close=status.outstanding,
        received=amount,
        surplus=max(ZERO, amount - status.outstanding),
    )
    plan.entries.append(_entry(installment, amount, when, EntryKind.PAGAMENTO, plan.batch_id))

    if with_discount:
        gap = quantize_currency(status.expected - status.settled_total - amount)
        if gap > ZERO:
            plan.entries.append(_entry(installment, gap, when, EntryKind.DESCONTO, plan.batch_id))
            plan.discount = gap
    return plan


def plan_settle_lot(
    installments: List[Installment],
    snapshot: LedgerSnapshot,
    installment_type: Union[InstallmentType, str],
    total_amount: MoneyLike,
    event_date: DateLike,
    discount_mode: bool = False,
    required_count: Optional[int] = None,
    batch_id: Optional[str] = None,
) -> SettlementPlan:
    """
    Plan a lot settlement over open installments of one type.

    Normal mode settles whole installments while the amount covers them and
    books the leftover on the last one settled. Discount mode closes exactly
    ``required_count`` installments, discounting what the amount does not
    cover.

    Raises:
        InvalidInstallmentType: If the type is unknown
        InvalidAmount: If the total is not positive
        InvalidDate: If the date is unparseable
        NoSettlableInstallment: Normal mode cannot fully settle any installment
        InsufficientCandidates: Discount mode without a positive count or
            with fewer open installments than requested
    """
    installment_type = InstallmentType.parse(installment_type)
    total = positive_amount(total_amount)
    when = parse_date(event_date)
    candidates = open_candidates(installments, snapshot, installment_type)

    plan = SettlementPlan(
        batch_id=batch_id or new_batch_id(LOT_BATCH_PREFIX),
        project_id=snapshot.project_id,
        unit_id=snapshot.unit_id,
        received=total,
    )

    if discount_mode:
        if not required_count or required_count <= 0:
            raise InsufficientCandidates("Discount mode requires a positive installment count")
        if len(candidates) < required_count:
            raise InsufficientCandidates(
                f"Only {len(candidates)} open {installment_type.value} installments, "
                f"{required_count} requested"
            )
        _pay_and_discount(plan, candidates[:required_count], total, when)
        return plan

    remaining = total
    last: Optional[Installment] = None
    for installment, outstanding in candidates:
        if remaining < outstanding:
            break
        plan.entries.append(_entry(installment, outstanding, when, EntryKind.PAGAMENTO, plan.batch_id))
        plan.amount_to_close += outstanding
        remaining -= outstanding
        last = installment

    if last is None:
        raise NoSettlableInstallment(
            f"Amount {total} does not fully settle any open {installment_type.value} installment"
        )
    if remaining > ZERO:
        plan.entries.append(_entry(last, remaining, when, EntryKind.PAGAMENTO, plan.batch_id))
        plan.surplus = remaining
    return plan


def plan_settle_unit(
    installments: List[Installment],
    snapshot: LedgerSnapshot,
    total_amount: MoneyLike,
    event_date: DateLike,
    close_remaining: bool = True,
    batch_id: Optional[str] = None,
) -> SettlementPlan:
    """
    Plan closing every open installment of a unit with one amount.

    Shortfalls are discounted. With ``close_remaining=False`` planning stops
    after the first installment the amount cannot fully cover.

    Raises:
        InvalidAmount: If the total is not positive
        InvalidDate: If the date is unparseable
        InsufficientCandidates: If the unit has no open installment
    """
    total = positive_amount(total_amount)
    when = parse_date(event_date)
    candidates = open_candidates(installments, snapshot)
    if not candidates:
        raise InsufficientCandidates(
            f"Unit {snapshot.project_id}/{snapshot.unit_id} has no open installments"
        )

    plan = SettlementPlan(
        batch_id=batch_id or new_batch_id(UNIT_BATCH_PREFIX),
        project_id=snapshot.project_id,
        unit_id=snapshot.unit_id,
        received=total,
    )
    _pay_and_discount(plan, candidates, total, when, stop_when_short=not close_remaining)
    return plan


class SettlementService:
    """Commits settlement plans to the unit ledgers."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.installments = InstallmentRepository(store)
        self.ledger = LedgerRepository(store)

    def preview_one(
        self,
        installment_id: str,
        amount: MoneyLike,
        event_date: DateLike,
        with_discount: bool = False,
        confirm_resettle: bool = False,
    ) -> SettlementPlan:
        installment = self.installments.get(installment_id)
        snapshot = self.ledger.snapshot(installment.project_id, installment.unit_id)
        return plan_settle_one(
            installment, snapshot, amount, event_date, with_discount, confirm_resettle
        )

    def settle_one(
        self,
        installment_id: str,
        amount: MoneyLike,
        event_date: DateLike,
        with_discount: bool = False,
        confirm_resettle: bool = False,
    ) -> SettlementBatch:
        """
        Record a payment on one installment.

        Raises:
            UnknownInstallment: If the id is not registered
            AlreadySettled: Re-settling a QUITADA installment without
                ``confirm_resettle``
            LedgerConflict: If the unit ledger changed while planning
        """
        installment = self.installments.get(installment_id)
        snapshot = self.ledger.snapshot(installment.project_id, installment.unit_id)
        plan = plan_settle_one(
            installment, snapshot, amount, event_date, with_discount, confirm_resettle
        )
        return self._commit(plan, snapshot, mode="single")

    def preview_lot(
        self,
        project_id: str,
        unit_id: str,
        installment_type: Union[InstallmentType, str],
        total_amount: MoneyLike,
        event_date: DateLike,
        discount_mode: bool = False,
        required_count: Optional[int] = None,
    ) -> SettlementPlan:
        snapshot = self.ledger.snapshot(project_id, unit_id)
        return plan_settle_lot(
            self.installments.list_for_unit(project_id, unit_id),
            snapshot,
            installment_type,
            total_amount,
            event_date,
            discount_mode,
            required_count,
        )

    def settle_lot(
        self,
        project_id: str,
        unit_id: str,
        installment_type: Union[InstallmentType, str],
        total_amount: MoneyLike,
        event_date: DateLike,
        discount_mode: bool = False,
        required_count: Optional[int] = None,
    ) -> SettlementBatch:
        """Settle several installments of one type with a single amount."""
        snapshot = self.ledger.snapshot(project_id, unit_id)
        plan = plan_settle_lot(
            self.installments.list_for_unit(project_id, unit_id),
            snapshot,
            installment_type,
            total_amount,
            event_date,
            discount_mode,
            required_count,
        )
        return self._commit(plan, snapshot, mode="lot")

    def preview_unit(
        self,
        project_id: str,
        unit_id: str,
        total_amount: MoneyLike,
        event_date: DateLike,
        close_remaining: bool = True,
    ) -> SettlementPlan:
        snapshot = self.ledger.snapshot(project_id, unit_id)
        return plan_settle_unit(
            self.installments.list_for_unit(project_id, unit_id),
            snapshot,
            total_amount,
            event_date,
            close_remaining,
        )

    def settle_unit(
        self,
        project_id: str,
        unit_id: str,
        total_amount: MoneyLike,
        event_date: DateLike,
        confirm: bool = False,
        confirm_again: bool = False,
        close_remaining: bool = True,
    ) -> SettlementBatch:
        """
        Close the open installments of a unit.

        Raises:
            ConfirmationRequired: Unless both ``confirm`` and ``confirm_again``
        """
        if not (confirm and confirm_again):
            raise ConfirmationRequired(
                f"Settling unit {project_id}/{unit_id} requires double confirmation"
            )
        snapshot = self.ledger.snapshot(project_id, unit_id)
        plan = plan_settle_unit(
            self.installments.list_for_unit(project_id, unit_id),
            snapshot,
            total_amount,
            event_date,
            close_remaining,
        )
        return self._commit(plan, snapshot, mode="unit")

    def _commit(self, plan: SettlementPlan, snapshot: LedgerSnapshot, mode: str) -> SettlementBatch:
        logger.info(
            "confirming_settlement",
            mode=mode,
            batch_id=plan.batch_id,
            project_id=plan.project_id,
            unit_id=plan.unit_id,
            entries=len(plan.entries),
        )
        try:
            written = self.ledger.append_batch(snapshot, plan.entries)
        except StoreError as exc:
            logger.error(
                "settlement_commit_failed",
                mode=mode,
                batch_id=plan.batch_id,
                error=str(exc),
                exc_info=True,
            )
            raise SettlementCommitError("Settlement could not be written.") from exc

        logger.info(
            "settlement_committed",
            mode=mode,
            batch_id=plan.batch_id,
            entries=len(written),
            received=str(plan.received),
            discount=str(plan.discount),
            surplus=str(plan.surplus),
        )
        return SettlementBatch(
            batch_id=plan.batch_id,
            project_id=plan.project_id,
            unit_id=plan.unit_id,
            entries=written,
        )
