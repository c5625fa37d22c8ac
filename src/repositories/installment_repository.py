"""
Installment Registry persistence.

Installments are stored as one record per unit, plus an id index so a single
installment can be resolved without scanning every unit.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from src.domain.errors import UnknownInstallment
from src.domain.models import Installment
from src.repositories.key_value_store import KeyValueStore, decode_record, encode_record

INSTALLMENTS_PREFIX = "installments/"
INSTALLMENT_INDEX_KEY = "index/installments"

UnitRef = Tuple[str, str]


def unit_installments_key(project_id: str, unit_id: str) -> str:
    return f"{INSTALLMENTS_PREFIX}{project_id}/{unit_id}"


def sort_by_due_date(installments: List[Installment]) -> List[Installment]:
    """Ascending due date; ties keep a stable order by id."""
    return sorted(installments, key=lambda inst: (inst.due_date, inst.id))


class InstallmentRepository:
    """Reads and writes per-unit installment lists."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def list_for_unit(self, project_id: str, unit_id: str) -> List[Installment]:
        payload = decode_record(
            self.store.get(unit_installments_key(project_id, unit_id)), default=[]
        )
        return sort_by_due_date([Installment.from_dict(item) for item in payload])

    def save_unit_plan(
        self, project_id: str, unit_id: str, installments: List[Installment]
    ) -> None:
        """Replace the whole plan of a unit and refresh the id index."""
        for installment in installments:
            if (installment.project_id, installment.unit_id) != (project_id, unit_id):
                raise ValueError(
                    f"Installment {installment.id} does not belong to unit {project_id}/{unit_id}"
                )

        previous_ids = {inst.id for inst in self.list_for_unit(project_id, unit_id)}
        ordered = sort_by_due_date(installments)
        self.store.put(
            unit_installments_key(project_id, unit_id),
            encode_record([inst.to_dict() for inst in ordered]),
        )

        index = self._load_index()
        for installment_id in previous_ids:
            index.pop(installment_id, None)
        for installment in ordered:
            index[installment.id] = [project_id, unit_id]
        self.store.put(INSTALLMENT_INDEX_KEY, encode_record(index))

    def locate(self, installment_id: str) -> UnitRef:
        """
        Resolve the unit an installment belongs to.

        Raises:
            UnknownInstallment: If the id is not registered.
        """
        ref = self._load_index().get(installment_id)
        if ref is None:
            raise UnknownInstallment(f"Installment {installment_id} not found")
        return ref[0], ref[1]

    def get(self, installment_id: str) -> Installment:
        project_id, unit_id = self.locate(installment_id)
        for installment in self.list_for_unit(project_id, unit_id):
            if installment.id == installment_id:
                return installment
        raise UnknownInstallment(f"Installment {installment_id} not found")

    def find(self, installment_id: str) -> Optional[Installment]:
        try:
            return self.get(installment_id)
        except UnknownInstallment:
            return None

    def list_units(self) -> List[UnitRef]:
        """Every unit that has a stored plan, ordered by key."""
        refs = []
        for key in self.store.keys(INSTALLMENTS_PREFIX):
            project_id, _, unit_id = key[len(INSTALLMENTS_PREFIX):].partition("/")
            refs.append((project_id, unit_id))
        return refs

    def _load_index(self) -> Dict[str, List[str]]:
        return decode_record(self.store.get(INSTALLMENT_INDEX_KEY), default={})
