"""
Year-by-year withdrawal scheduler.

Each plan year takes the previous year's ending balances and TFSA room, works
out mandatory draws, then iterates withdrawals against the household tax
engine until the after-tax spending target is met (or the accounts run dry).
"""
import logging
import math
from typing import List, NamedTuple, Optional, Tuple
from tax.calculator import TaxCalculator
from tax.household import HouseholdTaxEngine
from tax.models import (
    CreditsToggles, HouseholdTaxInputs, HouseholdTaxResult, IncomeSources,
    PensionSplitting, SpouseInput
)
from tax.store import default_store
from .factors import (
    RRIF_MIN_START_AGE, lif_max_factor, lif_min_max_factors, rrif_glide_target, rrif_min_factor
)
from .models import (
    LifePhase, PlanConfig, RetirementBalances, WithdrawalDiagnostics, WithdrawalSource,
    WithdrawalScheduleRow, WithdrawalSources, YearState
)
from .settings import get_settings
from .sources import FALLBACK_ORDER, TaxableHeadroom, apply_withdrawal_order, explicit_cap

logger = logging.getLogger(__name__)

MAX_SOLVER_ITERATIONS = 12
SHORTFALL_TOLERANCE = 1.0
CEILING_BUFFER = 1000.0
# Below this much household headroom the solver stops using taxable sources
HEADROOM_FLOOR = 1000.0
MAX_GROSS_UP_RATE = 0.45
MIN_RETENTION = 0.5
INVARIANT_TOLERANCE = 1e-6


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def nominal_from_real(amount_real: float, annual_index_rate: float, years_from_baseline: int) -> float:
    """Carry a baseline-year amount forward with compound indexing."""
    return _finite(amount_real * (1 + annual_index_rate) ** max(0, years_from_baseline))


class YearIncome(NamedTuple):
    """Nominal guaranteed and benefit income for one plan year."""
    pension_a: float
    pension_b: float
    cpp_a: float
    cpp_b: float
    oas_a: float
    oas_b: float

    @property
    def guaranteed(self) -> float:
        return self.pension_a + self.pension_b

    @property
    def benefits(self) -> float:
        return self.cpp_a + self.cpp_b + self.oas_a + self.oas_b


class WithdrawalScheduler:
    """Builds the withdrawal schedule for a plan configuration."""

    def __init__(self, config: PlanConfig, tax_engine: Optional[HouseholdTaxEngine] = None):
        settings = get_settings()
        self.config = config
        if tax_engine is None:
            tax_engine = HouseholdTaxEngine(TaxCalculator(default_store(settings.tax_tables_dir)))
        self.tax_engine = tax_engine
        self.store = tax_engine.calculator.store
        self.split_step = config.tax.pension_split_step or settings.pension_split_step

    def build_schedule(self, retirement_year: int, balances: RetirementBalances) -> List[WithdrawalScheduleRow]:
        """
        Fold over the plan years.

        Args:
            retirement_year: First plan year
            balances: Account balances at retirement

        Returns:
            One row per plan year, in order
        """
        state = self.initial_state(balances)
        rows = []
        for index in range(self.config.years_in_plan):
            state, row = self.step(state, retirement_year + index)
            rows.append(row)
        return rows

    def initial_state(self, balances: RetirementBalances) -> YearState:
        plan = self.config.withdrawals
        opening = balances.model_copy()
        if plan.roll_fhsa_into_rrsp:
            opening = RetirementBalances(
                fhsa=0.0,
                rrsp=opening.rrsp + opening.fhsa,
                tfsa=opening.tfsa,
                lira=opening.lira,
                non_registered=opening.non_registered,
            )
        return YearState(year_index=0, balances=opening, tfsa_room=plan.tfsa_room_at_retirement)

    def phase_for_age(self, age: int) -> LifePhase:
        ages = self.config.phase_ages
        if age <= ages.go_go_end_age:
            return LifePhase.GO_GO
        if age <= ages.slow_go_end_age:
            return LifePhase.SLOW_GO
        return LifePhase.NO_GO

    def spending_for_phase(self, phase: LifePhase) -> float:
        spending = self.config.spending
        if phase == LifePhase.GO_GO:
            return spending.go_go
        if phase == LifePhase.SLOW_GO:
            return spending.slow_go
        return spending.no_go

    def year_income(self, age_a: int, age_b: int, years_from_baseline: int) -> YearIncome:
        cfg = self.config
        index_rate = cfg.expected_inflation * cfg.cpi_multiplier

        def indexed(amount: float, started: bool) -> float:
            if not started:
                return 0.0
            return nominal_from_real(amount, index_rate, years_from_baseline)

        return YearIncome(
            pension_a=indexed(cfg.spouse_a.db_pension, True),
            pension_b=indexed(cfg.spouse_b.db_pension, True),
            cpp_a=indexed(cfg.spouse_a.cpp, age_a >= cfg.cpp_start_age),
            cpp_b=indexed(cfg.spouse_b.cpp, age_b >= cfg.cpp_start_age),
            oas_a=indexed(cfg.spouse_a.oas, age_a >= cfg.oas_start_age),
            oas_b=indexed(cfg.spouse_b.oas, age_b >= cfg.oas_start_age),
        )

    def household_tax(
        self,
        year: int,
        age_a: int,
        age_b: int,
        income: YearIncome,
        withdrawals: WithdrawalSources,
    ) -> HouseholdTaxResult:
        """Household tax for the year's withdrawals so far."""
        cfg = self.config
        # RRSP/RRIF and FHSA draws are attributed half to each spouse; the LIF belongs to A
        incomes_a = IncomeSources(
            pension_db=income.pension_a,
            rrsp_withdrawal=withdrawals.fhsa * 0.5,
            rrif_withdrawal=withdrawals.rrsp * 0.5,
            lif_withdrawal=withdrawals.lira,
            cpp=income.cpp_a,
            oas=income.oas_a,
        )
        incomes_b = IncomeSources(
            pension_db=income.pension_b,
            rrsp_withdrawal=withdrawals.fhsa * 0.5,
            rrif_withdrawal=withdrawals.rrsp * 0.5,
            cpp=income.cpp_b,
            oas=income.oas_b,
        )
        return self.tax_engine.compute(HouseholdTaxInputs(
            tax_year=year,
            spouse_a=SpouseInput(name=cfg.spouse_a.name, age=age_a, incomes=incomes_a),
            spouse_b=SpouseInput(name=cfg.spouse_b.name, age=age_b, incomes=incomes_b),
            credits=CreditsToggles(
                use_bpa=cfg.tax.use_bpa,
                use_age_amount=cfg.tax.use_age_amount,
                use_pension_credit=cfg.tax.use_pension_credit,
            ),
            pension_splitting=PensionSplitting(
                enabled=cfg.tax.enable_pension_splitting,
                optimize=True,
                step=self.split_step,
            ),
        ))

    @staticmethod
    def taxable_headroom(apply_ceiling: bool, ceiling: float, tax_result: HouseholdTaxResult) -> TaxableHeadroom:
        if not apply_ceiling:
            return TaxableHeadroom()
        headroom_a = max(0.0, ceiling - tax_result.spouse_a.taxable_income)
        headroom_b = max(0.0, ceiling - tax_result.spouse_b.taxable_income)
        # Household draws are split 50/50, so the tighter spouse limits them
        return TaxableHeadroom(
            spouse_a=headroom_a,
            spouse_b=headroom_b,
            household=2 * min(headroom_a, headroom_b),
        )

    def step(self, state: YearState, year: int) -> Tuple[YearState, WithdrawalScheduleRow]:
        """
        Compute one plan year.

        Args:
            state: Balances and TFSA room carried in from the previous year
            year: Calendar year being planned

        Returns:
            The state for the next year and this year's row
        """
        cfg = self.config
        plan = cfg.withdrawals
        index = state.year_index

        age_a = cfg.spouse_a.retire_age + index
        age_b = cfg.spouse_b.retire_age + index
        years_from_baseline = year - cfg.baseline_year

        start_balances = state.balances.model_copy()
        balances = state.balances.model_copy()
        tfsa_room = state.tfsa_room + plan.tfsa_new_room_per_year
        tfsa_room_start = tfsa_room

        # 1-2. Phase and nominal amounts
        phase = self.phase_for_age(age_a)
        target_real = self.spending_for_phase(phase)
        # Spending is indexed at full inflation; pensions and benefits at the CPI-adjusted rate
        target = nominal_from_real(target_real, cfg.expected_inflation, years_from_baseline)
        income = self.year_income(age_a, age_b, years_from_baseline)

        withdrawals = WithdrawalSources()

        # 3. Forced LIF minimum
        lif_min_factor, _ = lif_min_max_factors(age_a)
        lif_max_allowed = balances.lira * lif_max_factor(age_a, plan.lif_mode)
        lif_min_required = balances.lira * lif_min_factor if plan.force_lif_from_retirement else 0.0
        if lif_min_required > 0 and balances.lira > 0:
            amount = min(lif_min_required, balances.lira, lif_max_allowed)
            withdrawals.lira += amount
            balances.lira -= amount

        # 4. Guardrail ceiling
        oas_threshold = self.store.oas_clawback_threshold(year)
        apply_ceiling = plan.avoid_oas_clawback and (income.oas_a > 0 or income.oas_b > 0)
        ceiling = max(0.0, oas_threshold - CEILING_BUFFER) if apply_ceiling else math.inf
        ceiling_binding = False

        # 5. Mandatory RRIF draw: statutory minimum or glide target, whichever is larger
        rrif_min_required = 0.0
        if age_a >= RRIF_MIN_START_AGE:
            rrif_min_required = balances.rrsp * rrif_min_factor(age_a) * plan.rrif_min_multiplier
        rrif_glide = 0.0
        if plan.rrif_deplete_by_age is not None:
            rrif_glide = rrif_glide_target(
                balances.rrsp, age_a, plan.rrif_deplete_by_age,
                plan.rrif_front_load, cfg.expected_nominal_return,
            )

        mandatory_raw = max(rrif_min_required, rrif_glide)
        mandatory = mandatory_raw
        if apply_ceiling and mandatory > 0:
            base_tax = self.household_tax(year, age_a, age_b, income, withdrawals)
            ceiling_cap = self.taxable_headroom(True, ceiling, base_tax).household
            if ceiling_cap <= 0:
                mandatory = rrif_min_required
            elif mandatory > ceiling_cap:
                mandatory = max(rrif_min_required, ceiling_cap)
            ceiling_binding = mandatory_raw > mandatory
            if ceiling_binding:
                logger.info(
                    f"{year}: RRIF draw capped at {mandatory:.0f} (wanted {mandatory_raw:.0f}) "
                    f"by taxable income ceiling {ceiling:.0f}"
                )

        if mandatory > 0 and balances.rrsp > 0:
            # The statutory minimum overrides a lower explicit cap
            cap = explicit_cap(plan.caps, WithdrawalSource.RRSP)
            amount = min(mandatory, balances.rrsp, max(cap, rrif_min_required))
            withdrawals.rrsp += amount
            balances.rrsp -= amount

        # 6. Fixed-point solver for the after-tax target
        iterations = 0
        for iteration in range(MAX_SOLVER_ITERATIONS):
            iterations = iteration + 1
            tax_result = self.household_tax(year, age_a, age_b, income, withdrawals)
            available = income.guaranteed + income.benefits + withdrawals.total - tax_result.household.total_tax

            shortfall = max(0.0, target - available)
            if shortfall <= SHORTFALL_TOLERANCE:
                break

            headroom = self.taxable_headroom(apply_ceiling, ceiling, tax_result)
            household_taxable = tax_result.household.taxable_income
            avg_rate = tax_result.household.total_tax / household_taxable if household_taxable > 0 else 0.0
            gross_up = 1 / max(MIN_RETENTION, 1 - min(MAX_GROSS_UP_RATE, max(0.0, avg_rate)))

            avoid_taxable = apply_ceiling and headroom.household < HEADROOM_FLOOR
            if avoid_taxable and not ceiling_binding:
                logger.info(f"{year}: taxable income at ceiling {ceiling:.0f}, drawing non-taxable sources only")
            if avoid_taxable:
                ceiling_binding = True

            remaining = apply_withdrawal_order(
                need=shortfall,
                order=plan.order,
                balances=balances,
                withdrawals=withdrawals,
                caps=plan.caps,
                allow_tfsa=plan.allow_tfsa,
                avoid_taxable=avoid_taxable,
                headroom=headroom,
                lif_remaining=lif_max_allowed - withdrawals.lira,
                gross_up=gross_up,
            )

            if remaining > SHORTFALL_TOLERANCE and not avoid_taxable:
                remaining = apply_withdrawal_order(
                    need=remaining,
                    order=FALLBACK_ORDER,
                    balances=balances,
                    withdrawals=withdrawals,
                    caps=plan.caps,
                    allow_tfsa=plan.allow_tfsa,
                    avoid_taxable=False,
                    headroom=headroom,
                    lif_remaining=0.0,
                )

            if remaining > SHORTFALL_TOLERANCE:
                # Accounts cannot cover the need; leave the shortfall on the row
                break

        tax_result = self.household_tax(year, age_a, age_b, income, withdrawals)
        tax = tax_result.household.total_tax
        available = income.guaranteed + income.benefits + withdrawals.total - tax

        surplus = max(0.0, available - target)
        shortfall = max(0.0, target - available)
        if shortfall > SHORTFALL_TOLERANCE:
            logger.info(f"{year}: after-tax shortfall of {shortfall:.0f} against target {target:.0f}")

        # 7. Surplus routing: TFSA up to room, then non-registered
        to_tfsa = min(surplus, tfsa_room)
        to_non_reg = surplus - to_tfsa
        balances.tfsa += to_tfsa
        balances.non_registered += to_non_reg
        tfsa_room -= to_tfsa

        # 8. Growth
        end_balances = balances.grown(cfg.expected_nominal_return)

        logger.debug(
            f"{year}: phase={phase.value} target={target:.0f} tax={tax:.0f} "
            f"withdrawals={withdrawals.total:.0f} iterations={iterations}"
        )

        row = WithdrawalScheduleRow(
            year=year,
            age_a=age_a,
            age_b=age_b,
            phase=phase,
            target_after_tax_spending=target,
            guaranteed_income=income.guaranteed,
            benefits_income=income.benefits,
            withdrawals=withdrawals,
            surplus_invested_to_tfsa=to_tfsa,
            surplus_invested_to_non_reg=to_non_reg,
            end_balances=end_balances,
            debug=WithdrawalDiagnostics(
                target_after_tax_nominal=target,
                target_after_tax_real=target_real,
                taxable_income_a=tax_result.spouse_a.taxable_income,
                taxable_income_b=tax_result.spouse_b.taxable_income,
                tax=tax,
                oas_clawback_a=tax_result.spouse_a.oas_clawback,
                oas_clawback_b=tax_result.spouse_b.oas_clawback,
                oas_received_a=income.oas_a,
                oas_received_b=income.oas_b,
                oas_clawback_threshold=oas_threshold,
                taxable_income_ceiling=ceiling if math.isfinite(ceiling) else None,
                ceiling_binding=ceiling_binding,
                lif_min_required=lif_min_required,
                lif_max_allowed=lif_max_allowed,
                lif_mode=plan.lif_mode,
                rrif_min_required=rrif_min_required,
                rrif_glide_target=rrif_glide,
                iterations=iterations,
                after_tax_cash_available=available,
                surplus_after_tax=surplus,
                shortfall_after_tax=shortfall,
                start_balances=start_balances,
                tfsa_room_start=tfsa_room_start,
            ),
        )

        next_state = YearState(
            year_index=index + 1,
            balances=end_balances,
            tfsa_room=max(0.0, tfsa_room),
        )
        return next_state, row


def build_withdrawal_schedule(
    config: PlanConfig,
    retirement_year: int,
    balances: RetirementBalances,
    tax_engine: Optional[HouseholdTaxEngine] = None,
) -> List[WithdrawalScheduleRow]:
    """Withdrawal schedule from retirement_year through the plan's end age."""
    return WithdrawalScheduler(config, tax_engine).build_schedule(retirement_year, balances)


def check_row_invariants(row: WithdrawalScheduleRow) -> List[str]:
    """
    Check a row for conditions that indicate a scheduling defect.

    Returns:
        List of violations (empty if the row is consistent)
    """
    errors = []
    start = row.debug.start_balances

    for source in ("fhsa", "rrsp", "lira", "non_registered", "tfsa"):
        drawn = getattr(row.withdrawals, source)
        if drawn < -INVARIANT_TOLERANCE:
            errors.append(f"{row.year}: negative {source} withdrawal {drawn}")
        if drawn > getattr(start, source) + INVARIANT_TOLERANCE:
            errors.append(f"{row.year}: {source} withdrawal {drawn} exceeds balance {getattr(start, source)}")
        if getattr(row.end_balances, source) < -INVARIANT_TOLERANCE:
            errors.append(f"{row.year}: negative ending {source} balance")

    for clawback, received in [
        (row.debug.oas_clawback_a, row.debug.oas_received_a),
        (row.debug.oas_clawback_b, row.debug.oas_received_b),
    ]:
        if clawback < -INVARIANT_TOLERANCE or clawback > received + INVARIANT_TOLERANCE:
            errors.append(f"{row.year}: OAS clawback {clawback} outside [0, {received}]")

    routed = row.surplus_invested_to_tfsa + row.surplus_invested_to_non_reg
    if abs(routed - row.debug.surplus_after_tax) > INVARIANT_TOLERANCE * max(1.0, routed):
        errors.append(f"{row.year}: surplus routed {routed} != surplus {row.debug.surplus_after_tax}")

    if row.surplus_invested_to_tfsa > row.debug.tfsa_room_start + INVARIANT_TOLERANCE:
        errors.append(f"{row.year}: TFSA deposit exceeds available room")

    return errors
