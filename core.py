"""Core functionality for deterministic savings projections."""

from __future__ import annotations

import json
import logging
import math
import numbers
import os
from dataclasses import dataclass, fields
from datetime import date
from typing import Optional, Tuple

import numpy as np
from numba import njit


logger = logging.getLogger(__name__)


# Minimum value of (1 - tax_rate) used for the withdrawal gross-up.  A flat
# rate at or above 100% would otherwise divide by zero.
MIN_AFTER_TAX_SHARE = 0.0001

CONFIG_FILE = "config.json"
SUMMARY_MODES = ("nominal", "real")

# Stable identifiers for every user-editable field, in display order
INPUT_FIELDS = (
    "current_age",
    "retirement_age",
    "life_expectancy",
    "current_savings",
    "annual_contribution",
    "contribution_growth",
    "pre_return",
    "post_return",
    "inflation",
    "tax_rate",
    "retirement_spend",
    "retirement_cola",
    "social_security_start_age",
    "social_security_benefit",
)

AGE_FIELDS = {
    "current_age",
    "retirement_age",
    "life_expectancy",
    "social_security_start_age",
}

PERCENT_FIELDS = {
    "contribution_growth",
    "pre_return",
    "post_return",
    "inflation",
    "tax_rate",
    "retirement_cola",
}

DOLLAR_FIELDS = {
    "current_savings",
    "annual_contribution",
    "retirement_spend",
    "social_security_benefit",
}

# Default parameter values, in the units the user types them
DEFAULT_INPUTS = {
    "current_age": 30,
    "retirement_age": 65,
    "life_expectancy": 90,
    "current_savings": 50_000,
    "annual_contribution": 10_000,
    "contribution_growth": 0.0,
    "pre_return": 0.07,
    "post_return": 0.04,
    "inflation": 0.03,
    "tax_rate": 0.15,
    "retirement_spend": 40_000,
    "retirement_cola": 0.0,
    "social_security_start_age": 67,
    "social_security_benefit": 20_000,
}


class InvalidConfiguration(ValueError):
    """Raised when projection settings cannot describe a valid lifetime."""


def _clean_number_text(val) -> str:
    return str(val).replace("$", "").replace(",", "").strip()


def parse_optional_number(val) -> Optional[float]:
    """Convert text like '$1,234' to 1234.0, or ``None`` if blank or invalid."""

    if val is None:
        return None
    text = _clean_number_text(val)
    if not text:
        return None
    try:
        num = float(text)
    except ValueError:
        return None
    if not math.isfinite(num):
        return None
    return num


def parse_number(val, fallback: float = 0.0) -> float:
    """Convert text to a float, substituting ``fallback`` for unusable input."""

    num = parse_optional_number(val)
    return fallback if num is None else num


def parse_percent(val, fallback: float = 0.0) -> float:
    """Convert a percentage string like '7%' or '7' to a float 0.07."""

    if val is None:
        return fallback
    num = parse_optional_number(str(val).strip().rstrip("%"))
    return fallback if num is None else num / 100


def parse_dollars(val, fallback: float = 0.0) -> float:
    """Convert a currency string like '$1,234' to a float 1234.0."""

    return parse_number(val, fallback)


def parse_age(val) -> Optional[int]:
    """Convert an age string to a whole number of years, or ``None``."""

    num = parse_optional_number(val)
    if num is None:
        return None
    return int(math.floor(num))


def read_inputs(raw: dict) -> dict:
    """Parse raw field text into numeric settings keyed by field id."""

    settings = {}
    for key in INPUT_FIELDS:
        text = raw.get(key, "")
        if key in AGE_FIELDS:
            settings[key] = parse_age(text)
        elif key in PERCENT_FIELDS:
            settings[key] = parse_percent(text)
        else:
            settings[key] = parse_dollars(text)
    return settings


def clamp_ages(raw: dict) -> dict:
    """Return a copy of ``raw`` with age fields pushed into a valid order.

    Retirement must come after the current age, life expectancy after
    retirement, and a set benefit start age must fall within the lifetime.
    Nothing is changed while any of the three main ages is blank.
    """

    clamped = dict(raw)
    current = parse_age(raw.get("current_age"))
    retirement = parse_age(raw.get("retirement_age"))
    life = parse_age(raw.get("life_expectancy"))
    if current is None or retirement is None or life is None:
        return clamped

    if retirement <= current:
        retirement = current + 1
        clamped["retirement_age"] = str(retirement)
    if life <= retirement:
        life = retirement + 1
        clamped["life_expectancy"] = str(life)

    ss_start = parse_age(raw.get("social_security_start_age"))
    if ss_start is not None:
        if ss_start < current:
            clamped["social_security_start_age"] = str(current)
        elif ss_start > life:
            clamped["social_security_start_age"] = str(life)
    return clamped


@dataclass(frozen=True)
class ProjectionConfig:
    current_age: int
    retirement_age: int
    life_expectancy: int
    current_savings: float
    annual_contribution: float
    contribution_growth: float
    pre_return: float
    post_return: float
    inflation: float
    tax_rate: float
    retirement_spend: float
    retirement_cola: float
    social_security_benefit: float
    social_security_start_age: Optional[int] = None
    # The "today" the projection starts from; the first year is prorated
    # from this date through December 31.
    as_of: Optional[date] = None

    def __post_init__(self) -> None:
        if self.social_security_start_age is None:
            object.__setattr__(self, "social_security_start_age", self.retirement_age)
        if self.as_of is None:
            object.__setattr__(self, "as_of", date.today())

        for f in fields(self):
            if f.name == "as_of":
                continue
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidConfiguration(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidConfiguration(f"{f.name} must be finite, got {value!r}")
        for name in ("current_age", "retirement_age", "life_expectancy", "social_security_start_age"):
            if float(getattr(self, name)) != int(getattr(self, name)):
                raise InvalidConfiguration(f"{name} must be a whole number of years")
            object.__setattr__(self, name, int(getattr(self, name)))

        if self.retirement_age <= self.current_age:
            raise InvalidConfiguration("Retirement age must be greater than current age")
        if self.life_expectancy <= self.retirement_age:
            raise InvalidConfiguration("Life expectancy must be greater than retirement age")

    @property
    def years(self) -> int:
        return self.life_expectancy - self.current_age + 1

    def deflate(self, nominal: float, years: float) -> float:
        """Convert a nominal amount ``years`` from now to today's money."""
        return deflate(nominal, years, self.inflation)


def build_config(raw: dict, today: Optional[date] = None) -> Optional[ProjectionConfig]:
    """Build a config from raw field text, or ``None`` while an age is blank."""

    settings = read_inputs(raw)
    if (
        settings["current_age"] is None
        or settings["retirement_age"] is None
        or settings["life_expectancy"] is None
    ):
        return None
    return ProjectionConfig(as_of=today, **settings)


@dataclass(frozen=True)
class YearRecord:
    age: int
    year: int
    start_balance: float
    contribution: float
    withdrawal: float
    social_security: float
    growth: float
    tax: float
    end_balance: float
    real_end_balance: float
    is_retired: bool


@dataclass(frozen=True)
class ProjectionResult:
    years: Tuple[YearRecord, ...]
    balance_at_retirement: float
    real_balance_at_retirement: float
    ending_balance: float
    real_ending_balance: float
    years_funded: int

    @property
    def retirement_years(self) -> int:
        return sum(1 for rec in self.years if rec.is_retired)

    @property
    def fully_funded(self) -> bool:
        return self.years_funded >= self.retirement_years

    def balance_at_retirement_for(self, mode: str) -> float:
        _check_mode(mode)
        return self.real_balance_at_retirement if mode == "real" else self.balance_at_retirement

    def ending_balance_for(self, mode: str) -> float:
        _check_mode(mode)
        return self.real_ending_balance if mode == "real" else self.ending_balance

    def series(self, name: str) -> np.ndarray:
        """Return one :class:`YearRecord` field across all years as an array."""
        if name not in YearRecord.__dataclass_fields__:
            raise KeyError(f"Unknown year field: {name}")
        return np.array([getattr(rec, name) for rec in self.years])


def _check_mode(mode: str) -> None:
    if mode not in SUMMARY_MODES:
        raise ValueError(f"Unknown summary mode: {mode!r}")


def first_year_fraction(as_of: date) -> float:
    """Share of the calendar year left from ``as_of`` (inclusive) to Dec 31."""

    day_of_year = as_of.timetuple().tm_yday
    days_in_year = (date(as_of.year + 1, 1, 1) - date(as_of.year, 1, 1)).days
    return (days_in_year - (day_of_year - 1)) / days_in_year


@njit(cache=True)
def deflate(nominal: float, years: float, inflation: float) -> float:
    """Express ``nominal`` received ``years`` from now in today's money."""
    return nominal / (1.0 + inflation) ** years


@njit(cache=True)
def inflate(real: float, years: float, inflation: float) -> float:
    """Inverse of :func:`deflate`."""
    return real * (1.0 + inflation) ** years


# Column layout of the kernel's per-year output
_START, _CONTRIB, _WITHDRAW, _SS, _GROWTH, _TAX, _END, _REAL_END = range(8)


@njit(cache=True)
def _project_kernel(
    n_years: int,
    first_fraction: float,
    current_age: int,
    retirement_age: int,
    social_security_start_age: int,
    current_savings: float,
    annual_contribution: float,
    contribution_growth: float,
    pre_return: float,
    post_return: float,
    inflation: float,
    tax_rate: float,
    retirement_spend: float,
    retirement_cola: float,
    social_security_benefit: float,
):
    """JIT-compiled year-by-year recurrence.

    Returns ``(columns, retired, years_funded, balance_at_retirement,
    captured)`` where ``columns`` is an ``(n_years, 8)`` array laid out as
    the ``_START`` .. ``_REAL_END`` indices.
    """
    columns = np.zeros((n_years, 8))
    retired = np.zeros(n_years, dtype=np.bool_)
    after_tax_share = max(1.0 - tax_rate, MIN_AFTER_TAX_SHARE)

    balance = current_savings
    years_funded = 0
    balance_at_retirement = 0.0
    captured = False

    for i in range(n_years):
        age = current_age + i
        is_retired = age >= retirement_age
        if i == 0:
            year_fraction = first_fraction
            time_from_start = first_fraction
        else:
            year_fraction = 1.0
            time_from_start = float(i)

        retirement_time = float(max(0, age - retirement_age))
        if is_retired and i == 0:
            retirement_time += year_fraction

        price_level = (1.0 + inflation) ** time_from_start
        spend = retirement_spend * price_level * (1.0 + retirement_cola) ** retirement_time
        benefit = 0.0
        if age >= social_security_start_age:
            benefit = social_security_benefit * price_level

        spend_prorated = spend * year_fraction
        benefit_prorated = benefit * year_fraction
        net_need = max(spend_prorated - benefit_prorated, 0.0)

        withdrawal = 0.0
        tax = 0.0
        contribution = 0.0
        if is_retired:
            withdrawal = net_need / after_tax_share
            tax = withdrawal - net_need
        else:
            contribution = (
                annual_contribution * (1.0 + contribution_growth) ** i * year_fraction
            )

        start_balance = balance
        after_cashflow = start_balance + contribution - withdrawal
        rate = post_return if is_retired else pre_return
        end_balance = after_cashflow * (1.0 + rate) ** year_fraction

        if not captured and age == retirement_age:
            balance_at_retirement = start_balance
            captured = True
        if is_retired and after_cashflow > 0:
            years_funded += 1

        columns[i, _START] = start_balance
        columns[i, _CONTRIB] = contribution
        columns[i, _WITHDRAW] = withdrawal
        columns[i, _SS] = benefit_prorated
        columns[i, _GROWTH] = end_balance - after_cashflow
        columns[i, _TAX] = tax
        columns[i, _END] = end_balance
        columns[i, _REAL_END] = deflate(end_balance, time_from_start, inflation)
        retired[i] = is_retired

        balance = end_balance

    return columns, retired, years_funded, balance_at_retirement, captured


def project(cfg: ProjectionConfig) -> ProjectionResult:
    """Project the savings balance for every year from now through life expectancy."""

    n_years = cfg.years
    fraction = first_year_fraction(cfg.as_of)
    columns, retired, years_funded, at_retirement, captured = _project_kernel(
        n_years,
        fraction,
        cfg.current_age,
        cfg.retirement_age,
        cfg.social_security_start_age,
        float(cfg.current_savings),
        float(cfg.annual_contribution),
        float(cfg.contribution_growth),
        float(cfg.pre_return),
        float(cfg.post_return),
        float(cfg.inflation),
        float(cfg.tax_rate),
        float(cfg.retirement_spend),
        float(cfg.retirement_cola),
        float(cfg.social_security_benefit),
    )

    records = tuple(
        YearRecord(
            age=cfg.current_age + i,
            year=cfg.as_of.year + i,
            start_balance=float(row[_START]),
            contribution=float(row[_CONTRIB]),
            withdrawal=float(row[_WITHDRAW]),
            social_security=float(row[_SS]),
            growth=float(row[_GROWTH]),
            tax=float(row[_TAX]),
            end_balance=float(row[_END]),
            real_end_balance=float(row[_REAL_END]),
            is_retired=bool(retired[i]),
        )
        for i, row in enumerate(columns)
    )

    # Unreachable for a validated config, but keep a defined value
    balance_at_retirement = float(at_retirement) if captured else float(cfg.current_savings)
    ending_balance = records[-1].end_balance
    years_to_retirement = max(0, cfg.retirement_age - cfg.current_age)
    years_to_end = max(0, cfg.life_expectancy - cfg.current_age)

    logger.debug(
        "Projected %d years from age %d (first year fraction %.4f): "
        "%d of %d retired years funded, ending balance %.2f",
        n_years,
        cfg.current_age,
        fraction,
        years_funded,
        n_years - (cfg.retirement_age - cfg.current_age),
        ending_balance,
    )

    return ProjectionResult(
        years=records,
        balance_at_retirement=balance_at_retirement,
        real_balance_at_retirement=float(
            cfg.deflate(balance_at_retirement, float(years_to_retirement))
        ),
        ending_balance=ending_balance,
        real_ending_balance=float(cfg.deflate(ending_balance, float(years_to_end))),
        years_funded=int(years_funded),
    )


def load_config() -> dict:
    """Load saved inputs and summary mode if available.

    A file that cannot be decoded is removed and treated as missing.
    """

    if not os.path.exists(CONFIG_FILE):
        return {}
    try:
        with open(CONFIG_FILE, encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as exc:
        # invalid JSON or invalid UTF-8
        logger.warning("Discarding unreadable %s: %s", CONFIG_FILE, exc)
        os.remove(CONFIG_FILE)
        return {}
    if not isinstance(data, dict):
        logger.warning("Discarding %s with unexpected layout", CONFIG_FILE)
        os.remove(CONFIG_FILE)
        return {}

    config = {}
    inputs = data.get("inputs")
    if isinstance(inputs, dict):
        config["inputs"] = {
            key: val
            for key, val in inputs.items()
            if key in INPUT_FIELDS and isinstance(val, str)
        }
    if data.get("summary_mode") in SUMMARY_MODES:
        config["summary_mode"] = data["summary_mode"]
    return config


def save_config(inputs: Optional[dict] = None, summary_mode: Optional[str] = None) -> None:
    """Persist raw field text and/or the summary mode, keeping other saved keys."""

    data = load_config()
    if inputs is not None:
        data["inputs"] = {key: str(inputs[key]) for key in INPUT_FIELDS if key in inputs}
    if summary_mode is not None:
        _check_mode(summary_mode)
        data["summary_mode"] = summary_mode
    with open(CONFIG_FILE, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
