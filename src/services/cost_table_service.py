"""
Cost table maintenance for a project.

Closing the share lists produces a new table version; land value and monthly
costs are edited on the current version and split per unit on demand.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Iterable, List, Optional

from src.domain.errors import InvalidAmount
from src.domain.models import CostTable, MonthlyCost
from src.domain.money import MoneyLike, ZERO, positive_amount, quantize_currency
from src.repositories.cost_table_repository import CostTableRepository
from src.repositories.key_value_store import KeyValueStore
from src.services.allocation_service import UnitCostAllocation, allocate_cost_table
from src.services.weight_closure_service import ShareInput, close_weights
from src.utils.datetime_helpers import format_competency, parse_competency, utc_now_iso
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


def _competency_order(cost: MonthlyCost) -> tuple:
    month, year = parse_competency(cost.competency)
    return year, month


class CostTableService:
    """Creates, versions and edits project cost tables."""

    def __init__(self, store: KeyValueStore) -> None:
        self.tables = CostTableRepository(store)

    def get(self, project_id: str) -> Optional[CostTable]:
        return self.tables.get(project_id)

    def require(self, project_id: str) -> CostTable:
        table = self.tables.get(project_id)
        if table is None:
            raise LookupError(f"Project {project_id} has no cost table")
        return table

    def version(self, project_id: str, version: int) -> CostTable:
        """
        A past or current version of the project's table.

        Raises:
            LookupError: If that version was never closed
        """
        table = self.tables.get_version(project_id, version)
        if table is None:
            raise LookupError(f"Project {project_id} has no cost table version {version}")
        return table

    def versions(self, project_id: str) -> List[int]:
        return self.tables.list_versions(project_id)

    def close_table(
        self,
        project_id: str,
        principal: Iterable[ShareInput],
        special: Iterable[ShareInput] = (),
    ) -> CostTable:
        """
        Close the share lists and store them as the next table version.

        Land value and monthly costs carry over from the previous version.
        """
        closure = close_weights(principal, special)
        previous = self.tables.get(project_id)
        now = utc_now_iso()

        table = CostTable(
            project_id=project_id,
            version=previous.version + 1 if previous else 1,
            shares=closure.shares,
            target_units=closure.target_units,
            land_value=previous.land_value if previous else ZERO,
            monthly_costs=list(previous.monthly_costs) if previous else [],
            created_at=previous.created_at if previous else now,
            updated_at=now,
        )
        self.tables.save(table)
        logger.info(
            "cost_table_closed",
            project_id=project_id,
            version=table.version,
            shares=len(table.shares),
            target=str(closure.target),
        )
        return table

    def set_land_value(self, project_id: str, land_value: MoneyLike) -> CostTable:
        value = quantize_currency(land_value)
        if value < ZERO:
            raise InvalidAmount(f"Land value must not be negative, got {value}")
        return self._save(replace(self.require(project_id), land_value=value))

    def add_monthly_cost(self, project_id: str, competency: str, amount: MoneyLike) -> CostTable:
        """
        Book a cost for a competency.

        Raises:
            InvalidDate: If the competency is invalid
            InvalidAmount: If the amount is not positive
            ValueError: If the competency already has a cost
        """
        table = self.require(project_id)
        normalized = format_competency(*parse_competency(competency))
        value = positive_amount(amount)
        if any(cost.competency == normalized for cost in table.monthly_costs):
            raise ValueError(f"Competency {normalized} already has a cost")

        cost = MonthlyCost(
            id=str(uuid.uuid4()), competency=normalized, amount=value, created_at=utc_now_iso()
        )
        return self._save(replace(table, monthly_costs=table.monthly_costs + [cost]))

    def update_monthly_cost(
        self,
        project_id: str,
        cost_id: str,
        competency: Optional[str] = None,
        amount: Optional[MoneyLike] = None,
    ) -> CostTable:
        table = self.require(project_id)
        current = self._find_cost(table, cost_id)
        normalized = (
            format_competency(*parse_competency(competency)) if competency else current.competency
        )
        value = positive_amount(amount) if amount is not None else current.amount
        if any(c.competency == normalized and c.id != cost_id for c in table.monthly_costs):
            raise ValueError(f"Competency {normalized} already has a cost")

        updated = replace(current, competency=normalized, amount=value)
        costs = [updated if c.id == cost_id else c for c in table.monthly_costs]
        return self._save(replace(table, monthly_costs=costs))

    def remove_monthly_cost(self, project_id: str, cost_id: str) -> CostTable:
        table = self.require(project_id)
        self._find_cost(table, cost_id)
        costs = [c for c in table.monthly_costs if c.id != cost_id]
        return self._save(replace(table, monthly_costs=costs))

    def allocation(self, project_id: str) -> List[UnitCostAllocation]:
        """Per-unit split of the current table."""
        return allocate_cost_table(self.require(project_id))

    @staticmethod
    def _find_cost(table: CostTable, cost_id: str) -> MonthlyCost:
        for cost in table.monthly_costs:
            if cost.id == cost_id:
                return cost
        raise LookupError(f"Monthly cost {cost_id} not found in project {table.project_id}")

    def _save(self, table: CostTable) -> CostTable:
        table = replace(
            table,
            monthly_costs=sorted(table.monthly_costs, key=_competency_order),
            updated_at=utc_now_iso(),
        )
        self.tables.save(table)
        logger.info(
            "cost_table_updated",
            project_id=table.project_id,
            version=table.version,
            land_value=str(table.land_value),
            months=len(table.monthly_costs),
        )
        return table
