"""
Tests for schedule export to pandas.
"""
import pytest
from retirement.engine import build_withdrawal_schedule
from retirement.export import MONEY_COLUMNS, schedule_to_frame, to_real_dollars
from retirement.models import (
    HouseholdMember, PhaseAges, PhaseSpending, PlanConfig, RetirementBalances,
    WithdrawalPlan, WithdrawalSource
)


def make_rows():
    config = PlanConfig(
        spouse_a=HouseholdMember(name="A", retire_age=65),
        spouse_b=HouseholdMember(name="B", retire_age=65),
        baseline_year=2026,
        expected_inflation=0.03,
        expected_nominal_return=0.04,
        spending=PhaseSpending(go_go=50000, slow_go=50000, no_go=50000),
        phase_ages=PhaseAges(go_go_end_age=67, slow_go_end_age=67, end_age=67),
        withdrawals=WithdrawalPlan(order=[WithdrawalSource.TFSA]),
    )
    return build_withdrawal_schedule(config, 2026, RetirementBalances(tfsa=800000))


def test_to_real_dollars():
    """Test deflating nominal amounts."""
    assert to_real_dollars(1030, 0.03, 1) == pytest.approx(1000)
    assert to_real_dollars(1000, 0.03, 0) == 1000
    assert to_real_dollars(1000, 0.03, -2) == 1000
    assert to_real_dollars(1000, -1.0, 3) == 1000


def test_schedule_to_frame_nominal():
    """One row per year, indexed by year."""
    rows = make_rows()
    df = schedule_to_frame(rows)

    assert list(df.index) == [2026, 2027, 2028]
    assert df.loc[2027, "target_after_tax_spending"] == pytest.approx(50000 * 1.03)
    assert df.loc[2026, "withdraw_tfsa"] == pytest.approx(rows[0].withdrawals.tfsa)
    assert df.loc[2028, "end_total"] == pytest.approx(rows[-1].end_balances.total)
    assert set(MONEY_COLUMNS).issubset(df.columns)


def test_schedule_to_frame_real():
    """Real dollars undo the spending indexation."""
    df = schedule_to_frame(make_rows(), dollars="real", baseline_year=2026, inflation=0.03)

    for year in [2026, 2027, 2028]:
        assert df.loc[year, "target_after_tax_spending"] == pytest.approx(50000)
    assert df.loc[2026, "phase"] == "Go-Go"


def test_schedule_to_frame_rejects_unknown_mode():
    """Test invalid dollars mode."""
    with pytest.raises(ValueError):
        schedule_to_frame(make_rows(), dollars="euros")


def test_empty_schedule():
    """An empty schedule gives an empty frame."""
    df = schedule_to_frame([], dollars="real", inflation=0.02)
    assert df.empty
