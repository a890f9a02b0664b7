"""YAML-driven role catalog used to validate session configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from .settings import settings

BUNDLED_CATALOG = Path(__file__).resolve().parent / "roles.yaml"


@dataclass
class RoleSpec:
    """Seniorities and interview types accepted for one role."""

    seniorities: List[str] = field(default_factory=list)
    interview_types: List[str] = field(default_factory=list)


def _load_yaml(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


class RoleCatalog:
    """Role → seniority/interview-type catalog, reloaded when the file changes."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.ROLE_CATALOG_PATH
        self._mtime = 0.0
        self._source = self.path
        self._roles: Dict[str, RoleSpec] = {}
        self.reload_if_changed(force=True)

    def reload_if_changed(self, force: bool = False) -> None:
        """Reload YAML configuration when the file timestamp changes."""

        source = self.path if os.path.exists(self.path) else str(BUNDLED_CATALOG)
        stat = os.stat(source)
        if not force and source == self._source and stat.st_mtime <= self._mtime:
            return
        cfg = _load_yaml(source)
        self._source = source
        self._mtime = stat.st_mtime
        self._roles = {
            name: RoleSpec(
                seniorities=list(values.get("seniorities") or []),
                interview_types=list(values.get("interview_types") or []),
            )
            for name, values in (cfg.get("roles") or {}).items()
        }

    def roles(self) -> Dict[str, RoleSpec]:
        self.reload_if_changed()
        return dict(self._roles)

    def problems(self, role: str, seniority: str, interview_types: Iterable[str]) -> List[str]:
        """Return human-readable problems with the combination; empty when valid."""

        roles = self.roles()
        entry = roles.get(role)
        if entry is None:
            return [f"unknown role '{role}'"]
        issues: List[str] = []
        if seniority not in entry.seniorities:
            issues.append(f"seniority '{seniority}' is not valid for role '{role}'")
        for kind in interview_types:
            if kind not in entry.interview_types:
                issues.append(f"interview type '{kind}' is not valid for role '{role}'")
        return issues

    def as_dict(self) -> Dict[str, Dict[str, List[str]]]:
        return {
            name: {"seniorities": list(entry.seniorities), "interview_types": list(entry.interview_types)}
            for name, entry in self.roles().items()
        }


_catalog: Optional[RoleCatalog] = None


def role_catalog() -> RoleCatalog:
    global _catalog
    if _catalog is None:
        _catalog = RoleCatalog()
    return _catalog


__all__ = ["BUNDLED_CATALOG", "RoleCatalog", "RoleSpec", "role_catalog"]
