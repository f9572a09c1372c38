from datetime import date

import numpy as np
import pytest

from core import ProjectionConfig, project
from report import (
    TABLE_COLUMNS,
    VISIBLE_ROWS,
    chart_series,
    explain,
    format_currency,
    format_percent,
    summary,
    table_rows,
    toggle_label,
)


def _make_config(**overrides) -> ProjectionConfig:
    settings = dict(
        current_age=30,
        retirement_age=65,
        life_expectancy=90,
        current_savings=50_000.0,
        annual_contribution=10_000.0,
        contribution_growth=0.0,
        pre_return=0.07,
        post_return=0.04,
        inflation=0.03,
        tax_rate=0.15,
        retirement_spend=40_000.0,
        retirement_cola=0.03,
        social_security_start_age=67,
        social_security_benefit=20_000.0,
        as_of=date(2025, 1, 1),
    )
    settings.update(overrides)
    return ProjectionConfig(**settings)


@pytest.mark.parametrize(
    "amount, expected",
    [
        (0, "$0"),
        (1234.4, "$1,234"),
        (1_234_567.6, "$1,234,568"),
        (-1234.6, "-$1,235"),
        (-0.3, "$0"),
        (2.5, "$3"),
        (0.5, "$1"),
        (-2.5, "-$3"),
        (1_234.5, "$1,235"),
    ],
)
def test_format_currency(amount, expected):
    assert format_currency(amount) == expected


@pytest.mark.parametrize(
    "rate, expected",
    [(0.07, "7%"), (0.025, "2.5%"), (0.0, "0%"), (0.1234, "12.3%")],
)
def test_format_percent(rate, expected):
    assert format_percent(rate) == expected


def test_table_rows_truncate_unless_show_all():
    result = project(_make_config())
    assert len(table_rows(result)) == VISIBLE_ROWS
    rows = table_rows(result, show_all=True)
    assert len(rows) == 61
    assert all(len(row) == len(TABLE_COLUMNS) for row in rows)
    assert rows[0][:3] == ("2025", "30", "$50,000")
    assert rows[0][4] == "$0"


def test_toggle_label():
    assert toggle_label(False) == "Show all years"
    assert toggle_label(True) == "Show fewer years"


def test_summary_nominal_and_real():
    result = project(_make_config(current_savings=10_000_000.0))

    nominal = summary(result, "nominal")
    assert nominal["balance_at_retirement_label"] == "Balance at retirement"
    assert nominal["ending_balance_label"] == "Ending balance"
    assert nominal["balance_at_retirement"] == format_currency(result.balance_at_retirement)
    assert nominal["years_funded"] == "Fully funded"

    real = summary(result, "real")
    assert real["balance_at_retirement_label"] == "Balance at retirement (today)"
    assert real["ending_balance_label"] == "Ending balance (today)"
    assert real["ending_balance"] == format_currency(result.real_ending_balance)


def test_summary_reports_funded_years_when_savings_run_out():
    result = project(
        _make_config(
            current_savings=0.0,
            annual_contribution=1_000.0,
            pre_return=0.0,
            post_return=0.0,
            inflation=0.0,
            retirement_cola=0.0,
            social_security_benefit=0.0,
            tax_rate=0.0,
        )
    )
    # 35 years of 1k contributions cover 40k of spending for no full year
    assert summary(result)["years_funded"] == "0 years"


def test_chart_series_shapes_and_signs():
    result = project(_make_config())
    series = chart_series(result)

    assert set(series) == {
        "ages",
        "nominal",
        "real",
        "contributions",
        "withdrawals",
        "social_security",
    }
    assert all(len(values) == 61 for values in series.values())
    assert np.all(series["withdrawals"] <= 0)
    assert series["withdrawals"][40] == -result.years[40].withdrawal
    np.testing.assert_array_equal(series["ages"], np.arange(30, 91))


def test_explain_mentions_key_assumptions():
    text = explain(_make_config())
    assert "age 30 in 2025" in text
    assert "age 90 (61 years)" in text
    assert "retirement at age 65" in text
    assert "starts at age 67" in text
    assert "15%" in text
    assert "1.18 dollars" in text


def test_explain_uses_engine_gross_up_floor():
    text = explain(_make_config(tax_rate=1.0))
    assert "costs 10000.00 dollars of withdrawal" in text
