#!/usr/bin/env python3
"""Validate local relief coordination environment readiness.

Runs the startup path (schema, demo seed, capacity reconciliation and one
recommendation pass) against a throwaway database and prints a PASS/FAIL
line per check. Exit status is 0 only when every check passes.
"""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from importlib.metadata import version
from pathlib import Path
from typing import Callable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.services.recommendation_service import RecommendationService
from relief_backend.utils.config import Settings, get_settings

SEPARATOR_LINE = "=" * 44
REQUIRED_DISTRIBUTIONS = {
    "fastapi": "fastapi",
    "uvicorn": "uvicorn",
    "pydantic": "pydantic",
    "httpx": "httpx",
    "pytest": "pytest",
}


def _run_check(name: str, check: Callable[[], str]) -> tuple[bool, str]:
    """Run one check; its return value is appended to the PASS line."""
    try:
        detail = check()
    except Exception as exc:  # pragma: no cover - reported, not raised
        return False, f"[FAIL] {name}: {exc}"
    return True, f"[PASS] {name}{detail}"


def _check_python() -> str:
    if sys.version_info < (3, 10):
        raise RuntimeError(f"Python >= 3.10 required, found {sys.version.split()[0]}")
    return f": {sys.version.split()[0]}"


def _check_packages() -> str:
    missing = []
    for module_name, dist_name in REQUIRED_DISTRIBUTIONS.items():
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            missing.append(f"{module_name} ({exc})")
    if missing:
        raise RuntimeError("missing/unimportable -> " + "; ".join(missing))
    return ": all importable"


def _startup_checks(settings: Settings) -> list[tuple[str, Callable[[], str]]]:
    repository = DataRepository(settings)
    ledger = CapacityLedgerService(repository=repository, settings=settings)
    recommendations = RecommendationService(repository=repository, settings=settings)

    def initialize() -> str:
        repository.initialize_database()
        return ""

    def seed() -> str:
        if not repository.seed_demo_data_if_empty():
            raise RuntimeError("demo seed skipped on an empty database")
        return f": {repository.count_open_requests()} open requests"

    def reconcile() -> str:
        shelters = ledger.recompute_all()
        if not shelters:
            raise RuntimeError("no shelters reconciled")
        occupants = sum(shelter.current_occupancy for shelter in shelters)
        return f": {len(shelters)} shelters, {occupants} occupants"

    def recommend() -> str:
        ranked = recommendations.generate()
        if not ranked:
            raise RuntimeError("no recommendations generated")
        return f": top score={ranked[0].urgency_score:.2f}"

    return [
        ("Database initialization", initialize),
        ("Demo data seeding", seed),
        ("Capacity reconciliation", reconcile),
        ("Recommendation generation", recommend),
    ]


def main() -> int:
    temp_dir = tempfile.mkdtemp(prefix="relief-env-")
    results = [_run_check("Python version", _check_python), _run_check("Required packages", _check_packages)]
    try:
        settings = replace(get_settings(), database_path=Path(temp_dir) / "relief_validation.db")
        for name, check in _startup_checks(settings):
            passed, line = _run_check(name, check)
            results.append((passed, line))
            # Later checks depend on the earlier ones.
            if not passed:
                break
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Relief Coordination Environment Validation")
    print(SEPARATOR_LINE)
    for _, line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all(passed for passed, _ in results):
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
