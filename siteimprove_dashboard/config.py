from __future__ import annotations

import os
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Mapping, Optional

from siteimprove_dashboard.demo_data import build_demo_dataset
from siteimprove_dashboard.reconciler import ReportRepository
from siteimprove_dashboard.storage import JsonFileStorage

STORE_ENV = "SITEIMPROVE_DASHBOARD_STORE"
STRICT_ENV = "SITEIMPROVE_DASHBOARD_STRICT"
DEMO_SEED_ENV = "SITEIMPROVE_DASHBOARD_DEMO_SEED"

DEFAULT_STORE_DIRNAME = "siteimprove-dashboard-data"
DEFAULT_STORE_FILENAME = "store.json"

TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    store_path: Path
    strict: bool = False
    demo_seed: Optional[int] = None


def default_store_path() -> Path:
    return Path.cwd() / DEFAULT_STORE_DIRNAME / DEFAULT_STORE_FILENAME


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    *,
    store_path: "str | Path | None" = None,
    strict: Optional[bool] = None,
) -> Settings:
    """Settings from the environment; explicit arguments win."""
    env = os.environ if environ is None else environ

    if store_path is None:
        store_path = env.get(STORE_ENV) or default_store_path()
    if strict is None:
        strict = env.get(STRICT_ENV, "").strip().lower() in TRUTHY

    raw_seed = env.get(DEMO_SEED_ENV, "").strip()
    try:
        demo_seed = int(raw_seed) if raw_seed else None
    except ValueError:
        raise ValueError(f"{DEMO_SEED_ENV} must be an integer, got {raw_seed!r}") from None

    return Settings(store_path=Path(store_path), strict=strict, demo_seed=demo_seed)


def open_repository(settings: Settings) -> ReportRepository:
    storage = JsonFileStorage(settings.store_path)
    return ReportRepository(storage, seed_factory=partial(build_demo_dataset, seed=settings.demo_seed))
