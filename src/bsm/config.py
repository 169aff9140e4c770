from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class BillingPolicy:
    sales_default_tax_rate: Decimal = Decimal("10")
    purchase_default_tax_rate: Decimal = Decimal("0")
    sales_prefix: str = "INV"
    purchase_prefix: str = "PUR"
    numbering_retries: int = 5
    ledger_cas_retries: int = 3


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "BillingStockManager") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    override = os.environ.get("BSM_DB_PATH", "").strip()
    db = Path(override) if override else base / "billing.db"
    logs = base / "logs"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)
    db.parent.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def get_busy_timeout(default: float = 5.0) -> float:
    raw = os.environ.get("BSM_BUSY_TIMEOUT", "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_log_level(default: str = "INFO") -> str:
    level = (os.environ.get("BSM_LOG_LEVEL", "").strip() or default).upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        return default.upper()
    return level
