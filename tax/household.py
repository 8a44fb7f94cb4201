"""
Household tax for two people, with an optional pension income splitting optimizer.
"""
import logging
from typing import NamedTuple, Optional
from .calculator import TaxCalculator, eligible_pension_income
from .models import (
    HouseholdTaxInputs, HouseholdTaxResult, HouseholdTotals, HouseholdDebug,
    SplitDecision, SpouseSplitTrace, IncomeSources, PersonTaxResult
)

logger = logging.getLogger(__name__)

MAX_SPLIT_FRACTION = 0.5
DEFAULT_SPLIT_STEP = 100.0
SPLIT_TOLERANCE = 0.0001

# Donor buckets are drawn down in this order
DONOR_BUCKETS = ("pension_db", "rrif_withdrawal", "lif_withdrawal")


def remove_split(incomes: IncomeSources, amount: float) -> IncomeSources:
    """Take `amount` of eligible pension income away from the donor's buckets."""
    remaining = max(0.0, amount)
    changes = {}
    for bucket in DONOR_BUCKETS:
        if remaining <= 0:
            break
        current = max(0.0, getattr(incomes, bucket))
        take = min(current, remaining)
        changes[bucket] = current - take
        remaining -= take
    return incomes.model_copy(update=changes)


def add_split(incomes: IncomeSources, amount: float) -> IncomeSources:
    """Credit `amount` to the recipient's DB pension bucket, which is always eligible."""
    return incomes.model_copy(update={
        "pension_db": max(0.0, incomes.pension_db) + max(0.0, amount)
    })


class _Candidate(NamedTuple):
    split_amount: float
    total: float
    result_a: PersonTaxResult
    result_b: PersonTaxResult
    incomes_a: IncomeSources
    incomes_b: IncomeSources


class HouseholdTaxEngine:
    """Combines two people's tax and searches for the best pension split."""

    def __init__(self, calculator: Optional[TaxCalculator] = None):
        self.calculator = calculator or TaxCalculator()

    def compute(self, inputs: HouseholdTaxInputs) -> HouseholdTaxResult:
        """
        Compute household tax.

        The donor is whoever has the higher taxable income (ties go to spouse A).
        Up to half of the donor's eligible pension income may move to the
        recipient. When optimizing, every multiple of the step from 0 to that
        maximum is scored and the first strictly lowest combined tax wins.

        Args:
            inputs: Tax year, both spouses and splitting settings

        Returns:
            HouseholdTaxResult with per-person results and the split trace
        """
        spouse_a, spouse_b = inputs.spouse_a, inputs.spouse_b
        tables = self.calculator.store.pick(inputs.tax_year)
        splitting = inputs.pension_splitting

        pre_a = eligible_pension_income(spouse_a.age, spouse_a.incomes)
        pre_b = eligible_pension_income(spouse_b.age, spouse_b.incomes)

        a_is_donor = spouse_a.incomes.taxable_income >= spouse_b.incomes.taxable_income
        donor, recipient = (spouse_a, spouse_b) if a_is_donor else (spouse_b, spouse_a)
        donor_eligible = pre_a if a_is_donor else pre_b

        max_split = MAX_SPLIT_FRACTION * donor_eligible if splitting.enabled else 0.0
        step = max(1.0, splitting.step or DEFAULT_SPLIT_STEP)

        def score(split_amount: float) -> _Candidate:
            donor_incomes = remove_split(donor.incomes, split_amount)
            recipient_incomes = add_split(recipient.incomes, split_amount)
            incomes_a = donor_incomes if a_is_donor else recipient_incomes
            incomes_b = recipient_incomes if a_is_donor else donor_incomes

            result_a = self.calculator.compute_person(
                inputs.tax_year, spouse_a.name, spouse_a.age, incomes_a, inputs.credits
            )
            result_b = self.calculator.compute_person(
                inputs.tax_year, spouse_b.name, spouse_b.age, incomes_b, inputs.credits
            )
            return _Candidate(
                split_amount, result_a.total_tax + result_b.total_tax,
                result_a, result_b, incomes_a, incomes_b,
            )

        best = score(0.0)
        evaluated = 1

        if splitting.enabled and splitting.optimize and max_split > 0:
            # The grid starts at k=0, so a zero split is scored (and counted) twice
            candidate_count = int((max_split + SPLIT_TOLERANCE) // step) + 1
            for k in range(candidate_count):
                candidate = score(k * step)
                evaluated += 1
                if candidate.total < best.total:
                    best = candidate

        decision = SplitDecision(enabled=splitting.enabled, evaluated_candidates=evaluated)
        if splitting.enabled and best.split_amount > 0:
            decision.chosen_split_amount = best.split_amount
            decision.donor = donor.name
            decision.recipient = recipient.name
            logger.debug(
                f"Split {best.split_amount:.0f} from {donor.name} to {recipient.name} "
                f"after {evaluated} candidates"
            )

        debug = HouseholdDebug(
            tax_year=inputs.tax_year,
            tables_year=tables.year,
            splitting=decision,
            spouse_a=SpouseSplitTrace(
                pre_split_eligible_pension_income=pre_a,
                post_split_eligible_pension_income=eligible_pension_income(spouse_a.age, best.incomes_a),
                incomes_used=best.incomes_a,
            ),
            spouse_b=SpouseSplitTrace(
                pre_split_eligible_pension_income=pre_b,
                post_split_eligible_pension_income=eligible_pension_income(spouse_b.age, best.incomes_b),
                incomes_used=best.incomes_b,
            ),
        )

        return HouseholdTaxResult(
            spouse_a=best.result_a,
            spouse_b=best.result_b,
            household=HouseholdTotals(
                taxable_income=best.result_a.taxable_income + best.result_b.taxable_income,
                total_tax=best.result_a.total_tax + best.result_b.total_tax,
                after_tax_income=best.result_a.after_tax_income + best.result_b.after_tax_income,
                oas_clawback=best.result_a.oas_clawback + best.result_b.oas_clawback,
            ),
            debug=debug,
        )


def compute_household_tax(inputs: HouseholdTaxInputs, calculator: Optional[TaxCalculator] = None) -> HouseholdTaxResult:
    """Convenience wrapper around HouseholdTaxEngine.compute."""
    return HouseholdTaxEngine(calculator).compute(inputs)
