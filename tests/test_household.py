"""
Tests for household tax and the pension splitting optimizer.
"""
import pytest
from tax.calculator import TaxCalculator
from tax.household import HouseholdTaxEngine, compute_household_tax, remove_split, add_split
from tax.models import HouseholdTaxInputs, SpouseInput, IncomeSources, PensionSplitting
from tax.store import TaxTableStore


def household(a_incomes, b_incomes, age_a=70, age_b=70, splitting=None, tax_year=2025):
    return HouseholdTaxInputs(
        tax_year=tax_year,
        spouse_a=SpouseInput(name="A", age=age_a, incomes=a_incomes),
        spouse_b=SpouseInput(name="B", age=age_b, incomes=b_incomes),
        pension_splitting=splitting or PensionSplitting(),
    )


def test_db_pensions_only_have_modest_tax():
    """Two retirees with only DB pensions pay some, but modest, tax."""
    result = compute_household_tax(household(
        IncomeSources(pension_db=29000),
        IncomeSources(pension_db=35000),
        age_a=67, age_b=65,
        splitting=PensionSplitting(enabled=True, optimize=True, step=100),
    ))

    assert result.household.total_tax > 0
    assert result.household.total_tax < 20000


def test_rrif_withdrawals_increase_tax():
    """Adding a RRIF withdrawal raises household tax."""
    base = compute_household_tax(household(
        IncomeSources(pension_db=29000), IncomeSources(pension_db=35000)
    ))
    higher = compute_household_tax(household(
        IncomeSources(pension_db=29000, rrif_withdrawal=20000), IncomeSources(pension_db=35000)
    ))

    assert higher.household.total_tax > base.household.total_tax


def test_optimized_split_never_worse_than_no_split():
    """Optimized splitting gives combined tax <= splitting off."""
    off = compute_household_tax(household(
        IncomeSources(pension_db=100000), IncomeSources()
    ))
    on = compute_household_tax(household(
        IncomeSources(pension_db=100000), IncomeSources(),
        splitting=PensionSplitting(enabled=True, optimize=True, step=500),
    ))

    assert on.household.total_tax <= off.household.total_tax
    assert on.household.total_tax < off.household.total_tax

    decision = on.debug.splitting
    assert decision.donor == "A"
    assert decision.recipient == "B"
    assert 0 < decision.chosen_split_amount <= 50000
    # Score at 0, then every multiple of 500 from 0 to 50000 inclusive
    assert decision.evaluated_candidates == 1 + 101


def test_split_moves_income_between_spouses():
    """Post-split incomes reflect the chosen amount."""
    result = compute_household_tax(household(
        IncomeSources(pension_db=100000), IncomeSources(),
        splitting=PensionSplitting(enabled=True, optimize=True, step=500),
    ))
    amount = result.debug.splitting.chosen_split_amount

    assert result.debug.spouse_a.incomes_used.pension_db == pytest.approx(100000 - amount)
    assert result.debug.spouse_b.incomes_used.pension_db == pytest.approx(amount)
    assert result.debug.spouse_a.pre_split_eligible_pension_income == 100000
    assert result.debug.spouse_b.post_split_eligible_pension_income == pytest.approx(amount)
    assert result.spouse_a.taxable_income + result.spouse_b.taxable_income == pytest.approx(100000)


def test_split_bounded_by_half_of_donor_eligible_income():
    """The split never exceeds half of the donor's eligible pension income."""
    result = compute_household_tax(household(
        IncomeSources(pension_db=10000, rrsp_withdrawal=150000), IncomeSources(),
        splitting=PensionSplitting(enabled=True, optimize=True, step=100),
    ))
    assert result.debug.splitting.chosen_split_amount <= 5000


def test_splitting_disabled_evaluates_one_candidate():
    """Without splitting only the zero split is scored."""
    result = compute_household_tax(household(
        IncomeSources(pension_db=100000), IncomeSources()
    ))
    assert result.debug.splitting.enabled is False
    assert result.debug.splitting.chosen_split_amount == 0
    assert result.debug.splitting.donor is None
    assert result.debug.splitting.evaluated_candidates == 1


def test_ties_keep_zero_split():
    """Ties keep the first (smallest) candidate."""
    # Credits wipe out tax at every split, so every candidate totals zero
    result = compute_household_tax(household(
        IncomeSources(pension_db=10000), IncomeSources(pension_db=10000),
        splitting=PensionSplitting(enabled=True, optimize=True, step=1000),
    ))
    assert result.household.total_tax == 0
    assert result.debug.splitting.chosen_split_amount == 0
    assert result.debug.splitting.evaluated_candidates == 1 + 6


def test_higher_income_spouse_b_is_donor():
    """Spouse B donates when B has the higher taxable income."""
    result = compute_household_tax(household(
        IncomeSources(cpp=5000), IncomeSources(pension_db=90000),
        splitting=PensionSplitting(enabled=True, optimize=True, step=500),
    ))
    assert result.debug.splitting.donor == "B"
    assert result.spouse_a.taxable_income > 5000


def test_oas_clawback_bounded_by_oas():
    """OAS clawback activates at high income and never exceeds OAS received."""
    result = compute_household_tax(household(
        IncomeSources(pension_db=140000, oas=9000), IncomeSources(), age_a=72, age_b=72
    ))

    assert result.spouse_a.oas_clawback > 0
    assert result.spouse_a.oas_clawback <= 9000
    assert result.spouse_b.oas_clawback == 0
    assert result.household.oas_clawback == pytest.approx(result.spouse_a.oas_clawback)


def test_table_year_fallback(make_tables):
    """A year without tables uses the latest earlier year."""
    engine = HouseholdTaxEngine(TaxCalculator(TaxTableStore([make_tables(2025)])))
    result = engine.compute(household(IncomeSources(pension_db=50000), IncomeSources(), tax_year=2031))

    assert result.debug.tax_year == 2031
    assert result.debug.tables_year == 2025


def test_remove_split_draws_buckets_in_order():
    """DB pension first, then RRIF, then LIF, never below zero."""
    incomes = IncomeSources(pension_db=3000, rrif_withdrawal=4000, lif_withdrawal=5000)

    after = remove_split(incomes, 8000)
    assert after.pension_db == 0
    assert after.rrif_withdrawal == 0
    assert after.lif_withdrawal == 4000

    after = remove_split(incomes, 50000)
    assert after.lif_withdrawal == 0

    assert add_split(IncomeSources(pension_db=100), 900).pension_db == 1000
