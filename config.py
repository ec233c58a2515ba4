"""
Central configuration for the stock-entry engine.

Backend location, endpoint paths, currency codes and draft storage are
defined here. Override via environment variables or by passing a Config
instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/engine_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_DRAFT_DB   = DEFAULT_OUTPUT_DIR / "drafts.db"


def config_dir() -> Path:
    return Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))


@dataclass
class Config:
    # --- Backend ---
    api_base_url: str = field(
        default_factory=lambda: os.getenv("STOCK_API_BASE_URL", "http://localhost:8000/api/v1/")
    )
    api_token: Optional[str] = field(
        default_factory=lambda: os.getenv("STOCK_API_TOKEN")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("STOCK_API_TIMEOUT", "30"))
    )

    # --- Endpoint paths (relative to api_base_url) ---
    stock_entries_path:  str = "items/stock-entries/"
    stocks_path:         str = "items/stock/"
    calculation_path:    str = "items/stock/calculate/"
    suppliers_path:      str = "suppliers/"
    currency_rates_path: str = "currency/rates/"
    products_path:       str = "items/product/"

    # --- Currencies ---
    base_currency_code: str = "UZS"
    usd_currency_code:  str = "USD"

    # --- Payments ---
    # Backend enum value used for auto-created payment splits
    default_payment_method: str = field(
        default_factory=lambda: os.getenv("DEFAULT_PAYMENT_METHOD", "Наличные")
    )
    payment_tolerance: float = 0.01

    # --- Drafts ---
    drafts_enabled: bool = field(
        default_factory=lambda: os.getenv("DRAFTS_ENABLED", "true").lower() != "false"
    )
    draft_db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DRAFT_DB_PATH", str(DEFAULT_DRAFT_DB)))
    )
    draft_debounce_seconds: float = field(
        default_factory=lambda: float(os.getenv("DRAFT_DEBOUNCE_SECONDS", "1.0"))
    )

    # --- Product search ---
    product_fuzzy_threshold: int = 60     # Minimum rapidfuzz score (0-100)

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from engine_settings.json if present."""
        settings_file = config_dir() / "engine_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "api_base_url":            str,
            "request_timeout":         float,
            "stock_entries_path":      str,
            "stocks_path":             str,
            "calculation_path":        str,
            "suppliers_path":          str,
            "currency_rates_path":     str,
            "products_path":           str,
            "base_currency_code":      str,
            "usd_currency_code":       str,
            "default_payment_method":  str,
            "payment_tolerance":       float,
            "drafts_enabled":          bool,
            "draft_debounce_seconds":  float,
            "product_fuzzy_threshold": int,
        }
        _env_names = {
            "api_base_url":           "STOCK_API_BASE_URL",
            "request_timeout":        "STOCK_API_TIMEOUT",
            "default_payment_method": "DEFAULT_PAYMENT_METHOD",
            "drafts_enabled":         "DRAFTS_ENABLED",
            "draft_debounce_seconds": "DRAFT_DEBOUNCE_SECONDS",
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key not in _type_map or not hasattr(self, key):
                    continue
                if key in _env_names and os.getenv(_env_names[key]) is not None:
                    continue  # environment wins
                setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load engine_settings.json: %s", exc)

    def ensure_output_dir(self) -> None:
        self.draft_db_path.parent.mkdir(parents=True, exist_ok=True)
