"""
Period Aggregator - monthly revenue report built from ledger history.

For every installment with entries dated inside a competency the report
splits the month's settlement into previsto (what was due), variacao (cash
above or below it), desconto (negative discounts) and recebido (cash), so
that ``previsto + variacao + desconto == recebido`` on every row. UNIT rows
carry one detail line per installment, flagging the ones settled that month.

Also provides the extra revenue lines shown under the report and the
per-unit statement over an arbitrary date range.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from src.core.config import Config
from src.domain.models import (
    EntryKind,
    Installment,
    InstallmentType,
    LedgerEntry,
    PeriodReportRow,
    ReportDetail,
    RowKind,
)
from src.domain.money import ZERO, quantize_currency
from src.repositories.installment_repository import InstallmentRepository
from src.repositories.key_value_store import KeyValueStore
from src.repositories.ledger_repository import LedgerRepository
from src.repositories.project_repository import ProjectRepository
from src.repositories.report_cache_repository import ReportCacheRepository
from src.services.weight_closure_service import unit_sort_key
from src.utils.datetime_helpers import (
    DateLike,
    competency_window,
    format_competency,
    parse_date,
    utc_now_iso,
)
from src.utils.logging_config import get_logger

logger = get_logger(__name__)

FIXED_EXTRA_NAMES = ["Aluguéis", "Condomínios", "IPTU", "Rendas Eventuais", "Receita Financeira"]
FREE_EXTRA_LINES = 5


@dataclass(frozen=True)
class PeriodFigures:
    previsto: Decimal
    variacao: Decimal
    desconto: Decimal
    recebido: Decimal
    settled_in_period: bool = False


def period_figures(
    expected: Decimal, entries: List[LedgerEntry], start: date, end: date
) -> Optional[PeriodFigures]:
    """
    Figures of one installment for entries dated in ``[start, end)``.

    Returns None when nothing was paid or discounted in the period.
    """
    settled_before = ZERO
    paid = ZERO
    discounted = ZERO
    for entry in entries:
        if entry.event_date < start:
            settled_before += entry.amount
        elif entry.event_date < end:
            if entry.kind is EntryKind.PAGAMENTO:
                paid += entry.amount
            else:
                discounted += entry.amount

    if paid == ZERO and discounted == ZERO:
        return None

    missing_before = max(ZERO, quantize_currency(expected) - settled_before)
    previsto = min(missing_before, paid + discounted)
    desconto = ZERO - discounted
    recebido = paid
    return PeriodFigures(
        previsto=previsto,
        variacao=recebido - previsto - desconto,
        desconto=desconto,
        recebido=recebido,
        settled_in_period=missing_before > ZERO and paid + discounted >= missing_before,
    )


def _rollup(
    kind: RowKind, rows: List[PeriodReportRow], project_id: Optional[str] = None
) -> PeriodReportRow:
    return PeriodReportRow(
        kind=kind,
        project_id=project_id,
        previsto=sum((r.previsto for r in rows), ZERO),
        variacao=sum((r.variacao for r in rows), ZERO),
        desconto=sum((r.desconto for r in rows), ZERO),
        recebido=sum((r.recebido for r in rows), ZERO),
    )


@dataclass
class PeriodReport:
    """Rows of one competency: UNIT rows, a SUBTOTAL per project, one TOTAL."""

    month: int
    year: int
    company_id: Optional[str]
    rows: List[PeriodReportRow]
    generated_at: str = ""

    @property
    def competency(self) -> str:
        return format_competency(self.month, self.year)

    @property
    def total(self) -> PeriodReportRow:
        return self.rows[-1]

    def unit_rows(self) -> List[PeriodReportRow]:
        return [row for row in self.rows if row.kind is RowKind.UNIT]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "year": self.year,
            "company_id": self.company_id,
            "generated_at": self.generated_at,
            "rows": [row.to_dict() for row in self.rows],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PeriodReport":
        return cls(
            month=int(data["month"]),
            year=int(data["year"]),
            company_id=data.get("company_id"),
            generated_at=data.get("generated_at", ""),
            rows=[PeriodReportRow.from_dict(row) for row in data["rows"]],
        )


@dataclass
class ExtraRevenueLine:
    """
    Manual revenue line shown under the report.

    Fixed lines (rents, condo fees, ...) carry only ``recebido``. Free lines
    are typed as previsto/variacao/desconto and ``recebido`` is their sum.
    """

    id: str
    name: str
    fixed: bool
    previsto: Decimal = ZERO
    variacao: Decimal = ZERO
    desconto: Decimal = ZERO
    recebido: Decimal = ZERO

    def normalized(self) -> "ExtraRevenueLine":
        if self.fixed:
            return ExtraRevenueLine(
                id=self.id, name=self.name, fixed=True, recebido=quantize_currency(self.recebido)
            )
        previsto = quantize_currency(self.previsto)
        variacao = quantize_currency(self.variacao)
        desconto = quantize_currency(self.desconto)
        return ExtraRevenueLine(
            id=self.id,
            name=self.name,
            fixed=False,
            previsto=previsto,
            variacao=variacao,
            desconto=desconto,
            recebido=previsto + variacao + desconto,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "fixed": self.fixed,
            "previsto": str(self.previsto),
            "variacao": str(self.variacao),
            "desconto": str(self.desconto),
            "recebido": str(self.recebido),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtraRevenueLine":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            fixed=bool(data.get("fixed")),
            previsto=Decimal(data.get("previsto", "0.00")),
            variacao=Decimal(data.get("variacao", "0.00")),
            desconto=Decimal(data.get("desconto", "0.00")),
            recebido=Decimal(data.get("recebido", "0.00")),
        )


def default_extras() -> List[ExtraRevenueLine]:
    fixed = [ExtraRevenueLine(id=f"FX-{name}", name=name, fixed=True) for name in FIXED_EXTRA_NAMES]
    free = [ExtraRevenueLine(id=f"FR-{i}", name="", fixed=False) for i in range(FREE_EXTRA_LINES)]
    return fixed + free


def extras_total(lines: List[ExtraRevenueLine]) -> PeriodReportRow:
    normalized = [line.normalized() for line in lines]
    return PeriodReportRow(
        kind=RowKind.TOTAL,
        previsto=sum((l.previsto for l in normalized), ZERO),
        variacao=sum((l.variacao for l in normalized), ZERO),
        desconto=sum((l.desconto for l in normalized), ZERO),
        recebido=sum((l.recebido for l in normalized), ZERO),
    )


def combine_with_extras(report: PeriodReport, lines: List[ExtraRevenueLine]) -> PeriodReportRow:
    """Report TOTAL plus the extra lines total."""
    return _rollup(RowKind.TOTAL, [report.total, extras_total(lines)])


@dataclass
class StatementLine:
    installment_id: str
    type: InstallmentType
    due_date: date
    figures: PeriodFigures


@dataclass
class UnitStatement:
    """Settlement figures of one unit between two dates (inclusive)."""

    project_id: str
    unit_id: str
    start: date
    end: date
    lines: List[StatementLine] = field(default_factory=list)
    cash_received: Decimal = ZERO

    @property
    def totals(self) -> PeriodReportRow:
        return PeriodReportRow(
            kind=RowKind.TOTAL,
            project_id=self.project_id,
            unit_id=self.unit_id,
            previsto=sum((l.figures.previsto for l in self.lines), ZERO),
            variacao=sum((l.figures.variacao for l in self.lines), ZERO),
            desconto=sum((l.figures.desconto for l in self.lines), ZERO),
            recebido=sum((l.figures.recebido for l in self.lines), ZERO),
        )


class PeriodReportService:
    """Builds period reports and unit statements from the ledger."""

    def __init__(self, store: KeyValueStore, cache_enabled: Optional[bool] = None) -> None:
        self.installments = InstallmentRepository(store)
        self.ledger = LedgerRepository(store)
        self.projects = ProjectRepository(store)
        self.cache = ReportCacheRepository(store)
        self.cache_enabled = Config.REPORT_CACHE_ENABLED if cache_enabled is None else cache_enabled

    def report(self, month: int, year: int, company_id: Optional[str] = None) -> PeriodReport:
        """
        Build the report of a competency, optionally for one company.

        Raises:
            InvalidDate: If month/year are out of range
        """
        start, end = competency_window(month, year)
        units: Dict[Tuple[str, str], PeriodReportRow] = {}
        allowed = (
            None
            if company_id is None
            else {p.project_id for p in self.projects.list_for_company(company_id)}
        )

        for project_id, unit_id in self.ledger.list_units():
            if allowed is not None and project_id not in allowed:
                continue
            row = self._unit_row(project_id, unit_id, start, end)
            if row is not None:
                units[(project_id, unit_id)] = row

        rows: List[PeriodReportRow] = []
        for project_id in sorted({pid for pid, _ in units}):
            project_rows = sorted(
                (row for (pid, _), row in units.items() if pid == project_id),
                key=lambda r: (unit_sort_key(r.unit_id), r.unit_id),
            )
            rows.extend(project_rows)
            rows.append(_rollup(RowKind.SUBTOTAL, project_rows, project_id))
        rows.append(_rollup(RowKind.TOTAL, list(units.values())))

        report = PeriodReport(
            month=month, year=year, company_id=company_id, rows=rows, generated_at=utc_now_iso()
        )
        if self.cache_enabled:
            self.cache.save(month, year, report.to_dict(), company_id)

        logger.info(
            "period_report_generated",
            competency=report.competency,
            company_id=company_id,
            units=len(units),
            recebido=str(report.total.recebido),
        )
        return report

    def cached(self, month: int, year: int, company_id: Optional[str] = None) -> Optional[PeriodReport]:
        payload = self.cache.load(month, year, company_id)
        return PeriodReport.from_dict(payload) if payload else None

    def extras(self, month: int, year: int, company_id: Optional[str] = None) -> List[ExtraRevenueLine]:
        payload = self.cache.load_extras(month, year, company_id)
        if not payload:
            return default_extras()
        return [ExtraRevenueLine.from_dict(item) for item in payload]

    def save_extras(
        self,
        month: int,
        year: int,
        lines: List[ExtraRevenueLine],
        company_id: Optional[str] = None,
    ) -> List[ExtraRevenueLine]:
        normalized = [line.normalized() for line in lines]
        self.cache.save_extras(month, year, [line.to_dict() for line in normalized], company_id)
        return normalized

    def unit_statement(
        self, project_id: str, unit_id: str, start: DateLike, end: DateLike
    ) -> UnitStatement:
        """
        Figures per installment for entries dated between ``start`` and
        ``end`` inclusive, with the cash received in that range.
        """
        first = parse_date(start)
        last = parse_date(end)
        if first > last:
            first, last = last, first
        end_exclusive = last + timedelta(days=1)

        grouped = self.ledger.snapshot(project_id, unit_id).by_installment()
        statement = UnitStatement(project_id=project_id, unit_id=unit_id, start=first, end=last)
        for installment in self.installments.list_for_unit(project_id, unit_id):
            entries = grouped.get(installment.id, [])
            statement.cash_received += sum(
                (
                    e.amount
                    for e in entries
                    if e.kind is EntryKind.PAGAMENTO and first <= e.event_date <= last
                ),
                ZERO,
            )
            figures = period_figures(installment.expected_amount, entries, first, end_exclusive)
            if figures is not None:
                statement.lines.append(
                    StatementLine(
                        installment_id=installment.id,
                        type=installment.type,
                        due_date=installment.due_date,
                        figures=figures,
                    )
                )
        return statement

    def _unit_row(
        self, project_id: str, unit_id: str, start: date, end: date
    ) -> Optional[PeriodReportRow]:
        installments: Dict[str, Installment] = {
            inst.id: inst for inst in self.installments.list_for_unit(project_id, unit_id)
        }
        grouped = self.ledger.snapshot(project_id, unit_id).by_installment()

        details: List[ReportDetail] = []
        for installment_id, entries in grouped.items():
            installment = installments.get(installment_id)
            if installment is None:
                logger.warning(
                    "ledger_entries_without_installment",
                    project_id=project_id,
                    unit_id=unit_id,
                    installment_id=installment_id,
                )
                continue
            result = period_figures(installment.expected_amount, entries, start, end)
            if result is not None:
                details.append(
                    ReportDetail(
                        installment_id=installment.id,
                        type=installment.type,
                        due_date=installment.due_date,
                        previsto=result.previsto,
                        variacao=result.variacao,
                        desconto=result.desconto,
                        recebido=result.recebido,
                        settled_in_period=result.settled_in_period,
                    )
                )

        if not details:
            return None
        details.sort(key=lambda d: (d.due_date, d.installment_id))
        return PeriodReportRow(
            kind=RowKind.UNIT,
            project_id=project_id,
            unit_id=unit_id,
            previsto=sum((d.previsto for d in details), ZERO),
            variacao=sum((d.variacao for d in details), ZERO),
            desconto=sum((d.desconto for d in details), ZERO),
            recebido=sum((d.recebido for d in details), ZERO),
            details=details,
        )