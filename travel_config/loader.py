"""
Configuration Loader (``travel_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``travel_config.schema``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from travel_config.schema import (
    AccessConfig,
    AccountingConfig,
    BackOfficeConfig,
    ChartAccountDef,
    CurrencyConfig,
    NumberingConfig,
    TaxConfig,
)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a decimal from a YAML string or number."""
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key}: cannot parse decimal from {value!r}") from None


def _codes(data: dict[str, Any] | None) -> dict[str, str]:
    return {str(k).upper(): str(v) for k, v in (data or {}).items()}


def parse_currency(base_currency: str, data: dict[str, Any]) -> CurrencyConfig:
    rates = {
        str(code).upper(): parse_decimal(rate, f"currency.rates.{code}")
        for code, rate in (data.get("rates") or {}).items()
    }
    return CurrencyConfig(
        base_currency=base_currency,
        rates=rates,
        auto_update_enabled=bool(data.get("auto_update_enabled", False)),
    )


def parse_tax(data: dict[str, Any]) -> TaxConfig:
    defaults = TaxConfig()
    return TaxConfig(
        vat_rate=parse_decimal(data.get("vat_rate", defaults.vat_rate), "tax.vat_rate"),
        money_epsilon=parse_decimal(
            data.get("money_epsilon", defaults.money_epsilon), "tax.money_epsilon"
        ),
    )


def parse_access(data: dict[str, Any]) -> AccessConfig:
    roles = data.get("unrestricted_roles")
    if roles is None:
        return AccessConfig()
    return AccessConfig(unrestricted_roles=frozenset(str(r).upper() for r in roles))


def parse_numbering(data: dict[str, Any]) -> NumberingConfig:
    return NumberingConfig(**{key: str(value) for key, value in data.items()})


def parse_chart_account(data: dict[str, Any]) -> ChartAccountDef:
    return ChartAccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=data["type"],
        parent_code=str(data["parent"]) if data.get("parent") is not None else None,
        currency=data.get("currency"),
    )


def parse_accounting(data: dict[str, Any]) -> AccountingConfig:
    return AccountingConfig(
        roles={str(k): str(v) for k, v in data["roles"].items()},
        revenue_by_service=_codes(data.get("revenue_by_service")),
        cost_by_service=_codes(data.get("cost_by_service")),
        bank_by_currency=_codes(data.get("bank_by_currency")),
        chart=tuple(parse_chart_account(a) for a in data.get("chart") or ()),
        auto_post=bool(data.get("auto_post", True)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of the raw configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> BackOfficeConfig:
    """Build a ``BackOfficeConfig`` from an already-loaded mapping."""
    base_currency = str(data["base_currency"]).upper()
    return BackOfficeConfig(
        currency=parse_currency(base_currency, data.get("currency") or {}),
        tax=parse_tax(data.get("tax") or {}),
        access=parse_access(data.get("access") or {}),
        numbering=parse_numbering(data.get("numbering") or {}),
        accounting=parse_accounting(data["accounting"]),
        invoice_due_days=int((data.get("invoicing") or {}).get("due_days", 30)),
        checksum=compute_checksum(data),
    )


def load_config(path: Path | str | None = None) -> BackOfficeConfig:
    """Load and validate a configuration file (``defaults.yaml`` when omitted)."""
    return parse_config(load_yaml_file(Path(path) if path else DEFAULT_CONFIG_PATH))
