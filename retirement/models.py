"""
Plan configuration, account balances and withdrawal schedule models.
"""
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class WithdrawalSource(str, Enum):
    """Entries of the withdrawal priority order."""
    PENSION = "pension"  # Informational only, never drawn
    FHSA = "fhsa"
    RRSP = "rrsp"
    LIRA = "lira"
    NON_REGISTERED = "non_registered"
    TFSA = "tfsa"


class LifMode(str, Enum):
    """How much of the LIF maximum the plan may use."""
    MIN = "min"
    MAX = "max"
    MID = "mid"


class LifePhase(str, Enum):
    """Spending phases of retirement."""
    GO_GO = "Go-Go"
    SLOW_GO = "Slow-Go"
    NO_GO = "No-Go"


class RetirementBalances(BaseModel):
    """Household account balances."""
    fhsa: float = Field(0.0, ge=0)
    rrsp: float = Field(0.0, ge=0)
    tfsa: float = Field(0.0, ge=0)
    lira: float = Field(0.0, ge=0)
    non_registered: float = Field(0.0, ge=0)

    @property
    def total(self) -> float:
        return self.fhsa + self.rrsp + self.tfsa + self.lira + self.non_registered

    def grown(self, rate: float) -> "RetirementBalances":
        """Balances after one year of growth at a uniform rate."""
        factor = 1 + rate
        return RetirementBalances(
            fhsa=max(0.0, self.fhsa * factor),
            rrsp=max(0.0, self.rrsp * factor),
            tfsa=max(0.0, self.tfsa * factor),
            lira=max(0.0, self.lira * factor),
            non_registered=max(0.0, self.non_registered * factor),
        )


class WithdrawalSources(BaseModel):
    """Amounts drawn from each account in a year."""
    fhsa: float = 0.0
    rrsp: float = 0.0
    lira: float = 0.0
    non_registered: float = 0.0
    tfsa: float = 0.0

    @property
    def total(self) -> float:
        return self.fhsa + self.rrsp + self.lira + self.non_registered + self.tfsa


class WithdrawalCaps(BaseModel):
    """Per-source annual caps; 0 means uncapped."""
    fhsa: float = Field(0.0, ge=0)
    rrsp: float = Field(0.0, ge=0)
    lira: float = Field(0.0, ge=0)
    non_registered: float = Field(0.0, ge=0)
    tfsa: float = Field(0.0, ge=0)


class HouseholdMember(BaseModel):
    """One retiree. Amounts are annual, in baseline-year dollars."""
    name: str
    retire_age: int = Field(..., ge=0, le=120)
    db_pension: float = Field(0.0, ge=0)
    cpp: float = Field(0.0, ge=0)
    oas: float = Field(0.0, ge=0)


class PhaseSpending(BaseModel):
    """After-tax spending targets per phase, in baseline-year dollars."""
    go_go: float = Field(..., ge=0)
    slow_go: float = Field(..., ge=0)
    no_go: float = Field(..., ge=0)


class PhaseAges(BaseModel):
    """Phase boundaries by the primary person's age."""
    go_go_end_age: int
    slow_go_end_age: int
    end_age: int

    @model_validator(mode='after')
    def ages_must_be_ordered(self):
        if not self.go_go_end_age <= self.slow_go_end_age <= self.end_age:
            raise ValueError('Phase ages must satisfy go_go_end_age <= slow_go_end_age <= end_age')
        return self


class WithdrawalPlan(BaseModel):
    """How the household draws down its accounts."""
    order: List[WithdrawalSource] = Field(
        default_factory=lambda: [
            WithdrawalSource.PENSION,
            WithdrawalSource.RRSP,
            WithdrawalSource.LIRA,
            WithdrawalSource.FHSA,
            WithdrawalSource.NON_REGISTERED,
            WithdrawalSource.TFSA,
        ]
    )
    caps: WithdrawalCaps = Field(default_factory=WithdrawalCaps)
    allow_tfsa: bool = True
    avoid_oas_clawback: bool = False

    force_lif_from_retirement: bool = False
    lif_mode: LifMode = LifMode.MID

    # RRIF glide path; no glide target when rrif_deplete_by_age is None
    rrif_deplete_by_age: Optional[int] = Field(None, ge=0, le=120)
    rrif_front_load: float = Field(0.0, ge=0, le=1)
    rrif_min_multiplier: float = Field(1.0, ge=0)

    tfsa_room_at_retirement: float = Field(0.0, ge=0)
    tfsa_new_room_per_year: float = Field(0.0, ge=0)

    roll_fhsa_into_rrsp: bool = False

    @field_validator('order')
    @classmethod
    def order_must_be_unique(cls, v):
        if len(set(v)) != len(v):
            raise ValueError('Withdrawal order must not repeat a source')
        return v


class TaxSettings(BaseModel):
    """Credit toggles and pension splitting used for every plan year."""
    use_bpa: bool = True
    use_age_amount: bool = True
    use_pension_credit: bool = True
    enable_pension_splitting: bool = True
    pension_split_step: Optional[float] = Field(None, gt=0)


class PlanConfig(BaseModel):
    """Complete input for a withdrawal schedule."""
    spouse_a: HouseholdMember
    spouse_b: HouseholdMember
    baseline_year: int
    expected_inflation: float = Field(0.02, ge=-0.5, le=1)
    # Pensions and benefits index at inflation * cpi_multiplier
    cpi_multiplier: float = Field(1.0, ge=0)
    expected_nominal_return: float = Field(0.05, ge=-1, le=1)
    cpp_start_age: int = Field(70, ge=60, le=70)
    oas_start_age: int = Field(70, ge=65, le=70)
    spending: PhaseSpending
    phase_ages: PhaseAges
    withdrawals: WithdrawalPlan = Field(default_factory=WithdrawalPlan)
    tax: TaxSettings = Field(default_factory=TaxSettings)

    @property
    def years_in_plan(self) -> int:
        first_age = min(self.spouse_a.retire_age, self.spouse_b.retire_age)
        return max(0, self.phase_ages.end_age - first_age + 1)


class YearState(BaseModel):
    """Accumulator carried from one plan year to the next."""
    model_config = ConfigDict(frozen=True)

    year_index: int = 0
    balances: RetirementBalances
    tfsa_room: float = Field(0.0, ge=0)


class WithdrawalDiagnostics(BaseModel):
    """Inspection bundle for one plan year."""
    target_after_tax_nominal: float
    target_after_tax_real: float

    taxable_income_a: float
    taxable_income_b: float
    tax: float
    oas_clawback_a: float
    oas_clawback_b: float
    oas_received_a: float
    oas_received_b: float

    oas_clawback_threshold: float
    taxable_income_ceiling: Optional[float] = None  # None when unbounded
    ceiling_binding: bool = False

    lif_min_required: float
    lif_max_allowed: float
    lif_mode: LifMode
    rrif_min_required: float
    rrif_glide_target: float

    iterations: int
    after_tax_cash_available: float
    surplus_after_tax: float
    shortfall_after_tax: float

    start_balances: RetirementBalances
    tfsa_room_start: float


class WithdrawalScheduleRow(BaseModel):
    """One plan year's outcome."""
    model_config = ConfigDict(frozen=True)

    year: int
    age_a: int
    age_b: int
    phase: LifePhase

    target_after_tax_spending: float
    guaranteed_income: float
    benefits_income: float

    withdrawals: WithdrawalSources

    surplus_invested_to_tfsa: float
    surplus_invested_to_non_reg: float

    end_balances: RetirementBalances
    debug: WithdrawalDiagnostics
