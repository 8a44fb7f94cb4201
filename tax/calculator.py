"""
Tax calculator for Canadian federal and provincial income tax on retirement income.
"""
import math
from typing import Dict, List, Optional
from .models import (
    TaxBracket, CreditsToggles, CreditsDetail, JurisdictionCredits,
    IncomeSources, PersonTaxResult, JurisdictionTaxData
)
from .store import TaxTableStore, default_store

PENSION_CREDIT_AGE = 65
AGE_AMOUNT_AGE = 65


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def progressive_tax(income: float, brackets: List[TaxBracket]) -> float:
    """
    Tax `income` under marginal brackets sorted by upper threshold.

    Each bracket taxes the slice of income between the previous threshold and
    min(income, its own threshold). The last bracket is unbounded.
    """
    x = max(0.0, _finite(income))
    tax = 0.0
    prev = 0.0
    for bracket in brackets:
        cap = bracket.upper
        tax += max(0.0, min(x, cap) - prev) * bracket.rate
        prev = cap
        if x <= cap:
            break
    return tax


def eligible_pension_income(age: int, incomes: IncomeSources) -> float:
    """
    Eligible pension income for the pension credit and for splitting.

    DB pension counts at any age; RRIF and LIF withdrawals count from 65.
    RRSP withdrawals never count (conservative: only once converted to a RRIF).
    CPP and OAS never count.
    """
    db = max(0.0, incomes.pension_db)
    if age < PENSION_CREDIT_AGE:
        return db
    return db + max(0.0, incomes.rrif_withdrawal) + max(0.0, incomes.lif_withdrawal)


class TaxCalculator:
    """Calculator for one person's annual tax, credits and OAS clawback."""

    def __init__(self, store: Optional[TaxTableStore] = None):
        self.store = store or default_store()

    def compute_credits(
        self,
        tax_year: int,
        age: int,
        taxable_income: float,
        pension_income: float,
        toggles: CreditsToggles,
    ) -> CreditsDetail:
        """
        Non-refundable credits for both jurisdictions.

        Args:
            tax_year: Tax year used to pick tables
            age: Person's age in the tax year
            taxable_income: Income used for the age amount income test
            pension_income: Eligible pension income
            toggles: Which credits apply

        Returns:
            CreditsDetail with federal, provincial and combined totals
        """
        tables = self.store.pick(tax_year)
        federal = self._jurisdiction_credits(tables.federal, age, taxable_income, pension_income, toggles)
        provincial = self._jurisdiction_credits(tables.provincial, age, taxable_income, pension_income, toggles)
        return CreditsDetail(
            federal=federal,
            provincial=provincial,
            total=federal.total + provincial.total,
        )

    def _jurisdiction_credits(
        self,
        data: JurisdictionTaxData,
        age: int,
        taxable_income: float,
        pension_income: float,
        toggles: CreditsToggles,
    ) -> JurisdictionCredits:
        credits = JurisdictionCredits()

        if toggles.use_bpa:
            credits.bpa = data.basic_personal_amount * data.lowest_rate

        if toggles.use_age_amount and age >= AGE_AMOUNT_AGE:
            # Income-tested phase-out against taxable income
            excess = max(0.0, taxable_income - data.age_amount_threshold)
            amount = max(0.0, data.age_amount_max - excess * data.age_amount_phase_out_rate)
            credits.age = amount * data.lowest_rate

        if toggles.use_pension_credit:
            base = min(data.pension_credit_base, max(0.0, pension_income))
            credits.pension = base * data.lowest_rate

        credits.total = credits.bpa + credits.age + credits.pension
        return credits

    def compute_oas_clawback(self, net_income: float, oas_received: float, tax_year: int) -> float:
        """OAS recovery tax, bounded to [0, oas_received]."""
        tables = self.store.pick(tax_year)
        excess = max(0.0, _finite(net_income) - tables.oas_clawback_threshold)
        clawback = tables.oas_clawback_rate * excess
        return min(max(0.0, _finite(oas_received)), max(0.0, clawback))

    def compute_person(
        self,
        tax_year: int,
        name: str,
        age: int,
        incomes: IncomeSources,
        credits: CreditsToggles,
    ) -> PersonTaxResult:
        """
        Calculate one person's tax for the year.

        Args:
            tax_year: Tax year
            name: Person's name, carried through to the result
            age: Age in the tax year
            incomes: Income by bucket
            credits: Credit toggles

        Returns:
            PersonTaxResult with credits, clawback and bracket breakdowns
        """
        tables = self.store.pick(tax_year)

        taxable = _finite(incomes.taxable_income)
        eligible = eligible_pension_income(age, incomes)

        federal_before = progressive_tax(taxable, tables.federal.brackets)
        provincial_before = progressive_tax(taxable, tables.provincial.brackets)

        credit_detail = self.compute_credits(tax_year, age, taxable, eligible, credits)
        tax_after_credits = max(0.0, federal_before + provincial_before - credit_detail.total)

        # Net income for the clawback test is approximated by taxable income
        clawback = self.compute_oas_clawback(taxable, incomes.oas, tax_year)

        total_tax = _finite(tax_after_credits + clawback)

        return PersonTaxResult(
            name=name,
            age=age,
            taxable_income=taxable,
            eligible_pension_income=eligible,
            federal_tax_before_credits=federal_before,
            provincial_tax_before_credits=provincial_before,
            credits=credit_detail,
            oas_clawback=clawback,
            total_tax=total_tax,
            after_tax_income=taxable - total_tax,
            federal_breakdown=self.bracket_breakdown(taxable, tables.federal.brackets),
            provincial_breakdown=self.bracket_breakdown(taxable, tables.provincial.brackets),
        )

    def bracket_breakdown(self, income: float, brackets: List[TaxBracket]) -> List[Dict[str, Optional[float]]]:
        """Get detailed breakdown of tax by bracket."""
        x = max(0.0, _finite(income))
        breakdown = []
        prev = 0.0

        for bracket in brackets:
            bracket_income = max(0.0, min(x, bracket.upper) - prev)
            if bracket_income > 0:
                breakdown.append({
                    "bracket_min": prev,
                    "bracket_max": bracket.up_to,
                    "income_in_bracket": bracket_income,
                    "marginal_rate": bracket.rate,
                    "tax_in_bracket": bracket_income * bracket.rate
                })
            prev = bracket.upper
            if x <= bracket.upper:
                break

        return breakdown
