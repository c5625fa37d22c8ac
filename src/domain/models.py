"""
Domain records for cost allocation, installments and the settlement ledger.

Records serialize to plain JSON-compatible dicts (money as strings, dates as
ISO strings) so any keyed store can hold them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from src.domain.errors import InvalidInstallmentType
from src.domain.money import ZERO, units_to_weight


class ShareKind(Enum):
    """Origin of a weighted share in a cost table."""

    PRINCIPAL = "principal"
    SPECIAL = "special"


class InstallmentType(Enum):
    """Payment plan installment types."""

    ENTRADA = "Entrada"
    MENSAL = "Mensal"
    SEMESTRAL = "Semestral"
    ANUAL = "Anual"
    UNICA = "Única"
    FINANCIAMENTO = "Financiamento"
    OUTRAS = "Outras"

    @property
    def month_step(self) -> int:
        """Months between consecutive due dates (0 repeats the first date)."""
        return _MONTH_STEPS.get(self, 0)

    @classmethod
    def parse(cls, value: Any) -> "InstallmentType":
        """
        Resolve a member or its display value (``"Mensal"``, ``"Única"``...).

        Raises:
            InvalidInstallmentType: If the value is not a known type.
        """
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidInstallmentType(f"Unknown installment type: {value!r}") from exc


_MONTH_STEPS = {
    InstallmentType.MENSAL: 1,
    InstallmentType.SEMESTRAL: 6,
    InstallmentType.ANUAL: 12,
}


class EntryKind(Enum):
    """Ledger entry kinds. DESCONTO settles without counting as cash."""

    PAGAMENTO = "PAGAMENTO"
    DESCONTO = "DESCONTO"


class InstallmentStatus(Enum):
    """Derived installment state."""

    ABERTA = "ABERTA"
    PARCIAL = "PARCIAL"
    QUITADA = "QUITADA"


class UnitSaleStatus(Enum):
    """Derived unit state from its payment plan."""

    DISPONIVEL = "DISPONIVEL"
    VENDIDO = "VENDIDO"
    QUITADO = "QUITADO"


class RowKind(Enum):
    """Period report row level."""

    UNIT = "UNIT"
    SUBTOTAL = "SUBTOTAL"
    TOTAL = "TOTAL"


@dataclass(frozen=True)
class WeightedShare:
    """
    One unit's share of a cost table.

    Attributes:
        unit_id: 4-digit unit id (floor * 10 + final)
        weight_units: Weight in integer units of 1e-7
        kind: principal or special
        display_group: Color used to group equal weights
        label: Optional description, e.g. "Final 3"
    """

    unit_id: str
    weight_units: int
    kind: ShareKind = ShareKind.PRINCIPAL
    display_group: Optional[str] = None
    label: Optional[str] = None

    @property
    def weight(self) -> Decimal:
        return units_to_weight(self.weight_units)

    @property
    def is_special(self) -> bool:
        return self.kind is ShareKind.SPECIAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "weight_units": self.weight_units,
            "kind": self.kind.value,
            "display_group": self.display_group,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeightedShare":
        return cls(
            unit_id=data["unit_id"],
            weight_units=int(data["weight_units"]),
            kind=ShareKind(data.get("kind", ShareKind.PRINCIPAL.value)),
            display_group=data.get("display_group"),
            label=data.get("label"),
        )


@dataclass
class CostAllocationRequest:
    """A total to split across an ordered list of shares."""

    total_amount: Decimal
    shares: List[WeightedShare]


@dataclass(frozen=True)
class MonthlyCost:
    """A shared cost booked for one competency (mm/yyyy)."""

    competency: str
    amount: Decimal
    id: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "competency": self.competency,
            "amount": str(self.amount),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonthlyCost":
        return cls(
            id=data["id"],
            competency=data["competency"],
            amount=Decimal(data["amount"]),
            created_at=data["created_at"],
        )


@dataclass
class CostTable:
    """
    Closed share table of a project with its land value and monthly costs.

    Attributes:
        project_id: Parent project (obra)
        version: Incremented on every re-closure
        shares: Closed shares in display order
        target_units: Closure target in 1e-7 units (1 or 100)
        land_value: Land cost to split across shares
        monthly_costs: Costs per competency, sorted chronologically
    """

    project_id: str
    version: int
    shares: List[WeightedShare]
    target_units: int
    land_value: Decimal = ZERO
    monthly_costs: List[MonthlyCost] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "version": self.version,
            "shares": [share.to_dict() for share in self.shares],
            "target_units": self.target_units,
            "land_value": str(self.land_value),
            "monthly_costs": [cost.to_dict() for cost in self.monthly_costs],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CostTable":
        return cls(
            project_id=data["project_id"],
            version=int(data["version"]),
            shares=[WeightedShare.from_dict(s) for s in data["shares"]],
            target_units=int(data["target_units"]),
            land_value=Decimal(data.get("land_value", "0.00")),
            monthly_costs=[MonthlyCost.from_dict(c) for c in data.get("monthly_costs", [])],
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass(frozen=True)
class Installment:
    """A scheduled payment obligation of a sold unit."""

    id: str
    project_id: str
    unit_id: str
    type: InstallmentType
    due_date: date
    expected_amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "unit_id": self.unit_id,
            "type": self.type.value,
            "due_date": self.due_date.isoformat(),
            "expected_amount": str(self.expected_amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Installment":
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            unit_id=data["unit_id"],
            type=InstallmentType(data["type"]),
            due_date=date.fromisoformat(data["due_date"]),
            expected_amount=Decimal(data["expected_amount"]),
        )


@dataclass(frozen=True)
class LedgerEntry:
    """
    One immutable settlement event against an installment.

    Attributes:
        id: Entry id
        installment_id: Installment the entry settles
        amount: Positive amount
        event_date: Date the payment/discount applies to
        kind: PAGAMENTO or DESCONTO
        batch_id: Shared by all entries of one settlement call
        created_at: UTC timestamp of the write
        sequence: Position in the unit ledger (assigned on append)
    """

    id: str
    installment_id: str
    amount: Decimal
    event_date: date
    kind: EntryKind
    batch_id: Optional[str] = None
    created_at: str = ""
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "installment_id": self.installment_id,
            "amount": str(self.amount),
            "event_date": self.event_date.isoformat(),
            "kind": self.kind.value,
            "batch_id": self.batch_id,
            "created_at": self.created_at,
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerEntry":
        return cls(
            id=data["id"],
            installment_id=data["installment_id"],
            amount=Decimal(data["amount"]),
            event_date=date.fromisoformat(data["event_date"]),
            # entries written before discounts existed carry no kind
            kind=EntryKind(data.get("kind") or EntryKind.PAGAMENTO.value),
            batch_id=data.get("batch_id"),
            created_at=data.get("created_at", ""),
            sequence=int(data.get("sequence", 0)),
        )


@dataclass(frozen=True)
class StatusSnapshot:
    """Derived figures for one installment."""

    installment_id: str
    state: InstallmentStatus
    expected: Decimal
    received: Decimal
    discount: Decimal
    variance: Decimal
    settled_variance: Decimal

    @property
    def settled_total(self) -> Decimal:
        return self.received + self.discount

    @property
    def outstanding(self) -> Decimal:
        return max(ZERO, self.expected - self.settled_total)

    @property
    def is_open(self) -> bool:
        return self.state is not InstallmentStatus.QUITADA


@dataclass
class ReportDetail:
    """Figures of one installment inside a UNIT report row."""

    installment_id: str
    type: InstallmentType
    due_date: date
    previsto: Decimal
    variacao: Decimal
    desconto: Decimal
    recebido: Decimal
    settled_in_period: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "installment_id": self.installment_id,
            "type": self.type.value,
            "due_date": self.due_date.isoformat(),
            "previsto": str(self.previsto),
            "variacao": str(self.variacao),
            "desconto": str(self.desconto),
            "recebido": str(self.recebido),
            "settled_in_period": self.settled_in_period,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportDetail":
        return cls(
            installment_id=data["installment_id"],
            type=InstallmentType(data["type"]),
            due_date=date.fromisoformat(data["due_date"]),
            previsto=Decimal(data["previsto"]),
            variacao=Decimal(data["variacao"]),
            desconto=Decimal(data["desconto"]),
            recebido=Decimal(data["recebido"]),
            settled_in_period=bool(data.get("settled_in_period")),
        )


@dataclass
class PeriodReportRow:
    """
    One report line; the four figures always satisfy
    ``previsto + variacao + desconto == recebido``.
    """

    kind: RowKind
    previsto: Decimal
    variacao: Decimal
    desconto: Decimal
    recebido: Decimal
    project_id: Optional[str] = None
    unit_id: Optional[str] = None
    details: List[ReportDetail] = field(default_factory=list)

    @property
    def balances(self) -> bool:
        return self.previsto + self.variacao + self.desconto == self.recebido

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "project_id": self.project_id,
            "unit_id": self.unit_id,
            "previsto": str(self.previsto),
            "variacao": str(self.variacao),
            "desconto": str(self.desconto),
            "recebido": str(self.recebido),
            "details": [detail.to_dict() for detail in self.details],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PeriodReportRow":
        return cls(
            kind=RowKind(data["kind"]),
            project_id=data.get("project_id"),
            unit_id=data.get("unit_id"),
            previsto=Decimal(data["previsto"]),
            variacao=Decimal(data["variacao"]),
            desconto=Decimal(data["desconto"]),
            recebido=Decimal(data["recebido"]),
            details=[ReportDetail.from_dict(item) for item in data.get("details", [])],
        )
