"""
Lookup of project (obra) metadata supplied by the project management collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from src.repositories.key_value_store import KeyValueStore, decode_record, encode_record

PROJECTS_KEY = "index/projects"


@dataclass(frozen=True)
class ProjectInfo:
    """Project id, owning company and display name."""

    project_id: str
    company_id: Optional[str] = None
    name: str = ""


class ProjectRepository:
    """Small registry mapping projects to companies for report filtering."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def register(self, project: ProjectInfo) -> None:
        projects = self._load()
        projects[project.project_id] = {
            "company_id": project.company_id,
            "name": project.name,
        }
        self.store.put(PROJECTS_KEY, encode_record(projects))

    def get(self, project_id: str) -> Optional[ProjectInfo]:
        data = self._load().get(project_id)
        if data is None:
            return None
        return ProjectInfo(project_id=project_id, company_id=data.get("company_id"), name=data.get("name", ""))

    def list_for_company(self, company_id: str) -> List[ProjectInfo]:
        return [
            ProjectInfo(project_id=pid, company_id=data.get("company_id"), name=data.get("name", ""))
            for pid, data in sorted(self._load().items())
            if data.get("company_id") == company_id
        ]

    def _load(self) -> Dict[str, Dict[str, Optional[str]]]:
        return decode_record(self.store.get(PROJECTS_KEY), default={})
