import json
import os
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Set, Tuple

from py_valuation.fx import DEFAULT_BASE, FxRatePoint, FxTable
from py_tax.types import FilingStatus, TaxSettings
from .types import ConfigError, ContributionStep, EtfComponent, EtfPlan, PricePoint, PriceTable

def _number(value: Any, name: str) -> Decimal:
    """ Converts a JSON number or numeric string at ingestion time. """
    if isinstance(value, bool) or value is None:
        raise ConfigError(f"'{name}' must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigError(f"'{name}' must be a number, got {value!r}")
    if not result.is_finite():
        raise ConfigError(f"'{name}' must be finite, got {value!r}")
    return result

def _iso_date(value: Any, name: str) -> date:
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ConfigError(f"'{name}' must be an ISO date, got {value!r}")

def _flag(data: Dict[str, Any], key: str) -> bool:
    """ Optional JSON boolean, False when absent. """
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value

def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise ConfigError(f"Missing required key '{key}' in {where}")
    return data[key]

def _read_json(path: str) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"File not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}")

def parse_plan(data: Dict[str, Any]) -> Tuple[EtfPlan, List[EtfComponent]]:
    """
    Builds plan and components from a plan document.
    Numbers are validated here so the engine only ever sees Decimals.
    """
    if not isinstance(data, dict):
        raise ConfigError("Plan document must be a JSON object")

    steps = []
    for i, s in enumerate(data.get("contribution_steps") or []):
        month = str(_require(s, "month", f"contribution_steps[{i}]"))
        steps.append(ContributionStep(month=month, amount=_number(_require(s, "amount", f"contribution_steps[{i}]"), f"contribution_steps[{i}].amount")))

    fee_pct = data.get("fee_pct")
    plan = EtfPlan(
        id=str(_require(data, "id", "plan")),
        title=data.get("title", ""),
        month_contribution=_number(_require(data, "month_contribution", "plan"), "month_contribution"),
        start_date=_iso_date(_require(data, "start_date", "plan"), "start_date"),
        base_currency=data.get("base_currency", DEFAULT_BASE),
        contribution_steps=steps,
        fee_pct=_number(fee_pct, "fee_pct") if fee_pct is not None else None,
        rebalance_on_contribution=_flag(data, "rebalance_on_contribution"),
        start_month=data.get("start_month")
    )

    components = []
    for i, c in enumerate(_require(data, "components", "plan")):
        where = f"components[{i}]"
        ticker = c.get("ticker")
        isin = c.get("isin")
        if not ticker and not isin:
            raise ConfigError(f"{where} needs a ticker or an isin")
        components.append(EtfComponent(
            id=str(c.get("id", ticker or isin)),
            name=c.get("name", ticker or isin),
            ticker=ticker,
            isin=isin,
            currency=c.get("currency"),
            target_weight=_number(_require(c, "target_weight", where), f"{where}.target_weight")
        ))

    if not components:
        raise ConfigError("Plan has no components")

    weight_sum = sum(c.target_weight for c in components)
    if weight_sum != 1:
        logging.warning(f"Plan {plan.id}: target weights sum to {weight_sum}, drift is measured against them as given")

    return plan, components

def load_plan(plan_path: str) -> Tuple[EtfPlan, List[EtfComponent]]:
    logging.info(f"Loading plan: {plan_path}")
    return parse_plan(_read_json(plan_path))

def load_tax_settings(settings_path: str = "tax_settings.json") -> TaxSettings:
    """ Missing file means defaults (single, no church tax, 42 %). """
    if not os.path.exists(settings_path):
        logging.info(f"Tax settings {settings_path} not found. Using defaults.")
        return TaxSettings()

    data = _read_json(settings_path)
    defaults = TaxSettings()
    try:
        filing = FilingStatus(data.get("filing_status", defaults.filing_status.value))
    except ValueError:
        raise ConfigError(f"Unknown filing_status {data.get('filing_status')!r}")

    church = data.get("church_tax_rate")
    marginal = data.get("crypto_marginal_rate")
    return TaxSettings(
        filing_status=filing,
        church_tax_rate=_number(church, "church_tax_rate") if church is not None else defaults.church_tax_rate,
        crypto_marginal_rate=_number(marginal, "crypto_marginal_rate") if marginal is not None else defaults.crypto_marginal_rate
    )

def _load_cache_file(path: str) -> Optional[Dict[str, Any]]:
    """ Market cache files are optional; broken ones are skipped. """
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict) or "history" not in data:
            raise ValueError("Missing required keys in JSON")
        if not isinstance(data["history"], dict):
            raise ValueError("history must be an object keyed by date")
        return data
    except (json.JSONDecodeError, ValueError) as e:
        logging.warning(f"Cache corruption detected for {path}: {e}")
        return None

def load_market_data(data_dir: str, symbols: List[str], base: str = DEFAULT_BASE) -> Tuple[PriceTable, FxTable]:
    """
    Reads {SYMBOL}.json price caches and {BASE}{CCY}.json FX caches.

    Price files: {"currency": "USD", "history": {"2024-01-31": {"close": 101.2}}}
    FX files:    {"history": {"2024-01-31": 1.08}}  (quote per base)
    """
    points: List[PricePoint] = []
    currencies: Set[str] = set()

    for symbol in symbols:
        data = _load_cache_file(os.path.join(data_dir, f"{symbol}.json"))
        if data is None:
            logging.warning(f"No market data for {symbol} in {data_dir}")
            continue
        currency = data.get("currency", base)
        for date_str, candle in data["history"].items():
            close = candle.get("close") if isinstance(candle, dict) else candle
            try:
                points.append(PricePoint(symbol=symbol, date=date.fromisoformat(date_str), close=Decimal(str(close)), currency=currency))
            except (InvalidOperation, ValueError):
                logging.warning(f"Skipping bad price {symbol} {date_str}: {close!r}")
        if currency != base:
            currencies.add(currency)

    fx_points: List[FxRatePoint] = []
    for ccy in sorted(currencies):
        pair = f"{base}{ccy}"
        data = _load_cache_file(os.path.join(data_dir, f"{pair}.json"))
        if data is None:
            logging.warning(f"No FX data for {pair}; {ccy} components will be skipped")
            continue
        for date_str, rate in data["history"].items():
            try:
                fx_points.append(FxRatePoint(date=date.fromisoformat(date_str), rates={ccy: Decimal(str(rate))}, base=base))
            except (InvalidOperation, ValueError):
                logging.warning(f"Skipping bad FX rate {pair} {date_str}: {rate!r}")

    logging.info(f"Loaded {len(points)} price points for {len(symbols)} symbols, {len(fx_points)} FX fixings")
    return PriceTable.from_points(points), FxTable.from_points(fx_points, base=base)
