"""Formatting helpers that turn a projection into table rows, summaries and chart data."""

from __future__ import annotations

import math

import numpy as np

from core import (
    MIN_AFTER_TAX_SHARE,
    ProjectionConfig,
    ProjectionResult,
    first_year_fraction,
)


VISIBLE_ROWS = 18

TABLE_COLUMNS = (
    "Year",
    "Age",
    "Start balance",
    "Contribution",
    "Withdrawal",
    "Social Security",
    "Growth",
    "Tax",
    "End balance",
    "Real end balance",
)


def format_currency(amount: float) -> str:
    """Format ``amount`` as whole dollars, e.g. ``-$1,235``."""
    # halves round away from zero
    rounded = int(math.copysign(math.floor(abs(amount) + 0.5), amount))
    if rounded < 0:
        return f"-${-rounded:,.0f}"
    return f"${rounded:,.0f}"


def format_percent(rate: float) -> str:
    """Format a fraction as a percentage with at most one decimal."""
    text = f"{rate * 100:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    if text == "-0":
        text = "0"
    return f"{text}%"


def table_rows(result: ProjectionResult, show_all: bool = False) -> list[tuple[str, ...]]:
    """Return formatted year rows, truncated to ``VISIBLE_ROWS`` unless ``show_all``."""
    records = result.years if show_all else result.years[:VISIBLE_ROWS]
    return [
        (
            str(rec.year),
            str(rec.age),
            format_currency(rec.start_balance),
            format_currency(rec.contribution),
            format_currency(rec.withdrawal),
            format_currency(rec.social_security),
            format_currency(rec.growth),
            format_currency(rec.tax),
            format_currency(rec.end_balance),
            format_currency(rec.real_end_balance),
        )
        for rec in records
    ]


def toggle_label(show_all: bool) -> str:
    return "Show fewer years" if show_all else "Show all years"


def summary(result: ProjectionResult, mode: str = "nominal") -> dict[str, str]:
    """Headline figures for the nominal or real ("today's dollars") view."""
    real = mode == "real"
    if result.fully_funded:
        funded = "Fully funded"
    else:
        funded = f"{result.years_funded} years"
    return {
        "balance_at_retirement": format_currency(result.balance_at_retirement_for(mode)),
        "balance_at_retirement_label": (
            "Balance at retirement (today)" if real else "Balance at retirement"
        ),
        "years_funded": funded,
        "ending_balance": format_currency(result.ending_balance_for(mode)),
        "ending_balance_label": "Ending balance (today)" if real else "Ending balance",
    }


def chart_series(result: ProjectionResult) -> dict[str, np.ndarray]:
    """Arrays for the balance and cash-flow charts, indexed by age."""
    return {
        "ages": result.series("age"),
        "nominal": result.series("end_balance"),
        "real": result.series("real_end_balance"),
        "contributions": result.series("contribution"),
        "withdrawals": -result.series("withdrawal"),
        "social_security": result.series("social_security"),
    }


def explain(cfg: ProjectionConfig) -> str:
    """Return a plain-language explanation of the inputs and calculations."""
    fraction = first_year_fraction(cfg.as_of)
    years_to_retirement = cfg.retirement_age - cfg.current_age
    after_tax = max(1 - cfg.tax_rate, MIN_AFTER_TAX_SHARE)
    spend_at_retirement = cfg.retirement_spend * (1 + cfg.inflation) ** years_to_retirement
    explanation = [
        f"The projection runs from age {cfg.current_age} in {cfg.as_of.year} "
        f"through age {cfg.life_expectancy} ({cfg.years} years).",
        f"The first year covers {fraction:.1%} of {cfg.as_of.year}, counted from "
        f"{cfg.as_of.isoformat()} to December 31. Its contribution, spending, "
        "benefit and growth are all prorated by that share.",
        "",
        f"Before retirement at age {cfg.retirement_age}:",
        f"  - Starting balance of {format_currency(cfg.current_savings)}.",
        f"  - Contributions of {format_currency(cfg.annual_contribution)} a year, "
        f"raised {format_percent(cfg.contribution_growth)} each year.",
        f"  - Balance grows {format_percent(cfg.pre_return)} a year after that year's "
        "contribution is added.",
        "",
        "In retirement:",
        f"  - Spending of {format_currency(cfg.retirement_spend)} in today's dollars "
        f"rises with {format_percent(cfg.inflation)} inflation "
        f"(about {format_currency(spend_at_retirement)} at retirement) and a further "
        f"{format_percent(cfg.retirement_cola)} cost-of-living adjustment each retired year.",
        f"  - Social Security of {format_currency(cfg.social_security_benefit)} in "
        f"today's dollars starts at age {cfg.social_security_start_age}; it is "
        "indexed to inflation from today and offsets spending.",
        f"  - The remaining need is grossed up for a flat {format_percent(cfg.tax_rate)} "
        f"tax: each after-tax dollar costs {1 / after_tax:.2f} dollars of withdrawal.",
        f"  - Balance grows {format_percent(cfg.post_return)} a year after withdrawals.",
        "",
        "A retired year counts as funded when the balance is still positive after "
        "that year's withdrawal. Real balances divide by cumulative inflation since "
        "today to show today's purchasing power.",
    ]
    return "\n".join(explanation)
