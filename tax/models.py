"""
Tax data models for Canadian federal and provincial retirement tax estimates.
"""
from typing import List, Dict, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum


class Province(str, Enum):
    """Canadian provinces and territories."""
    AB = "AB"  # Alberta
    BC = "BC"  # British Columbia
    MB = "MB"  # Manitoba
    NB = "NB"  # New Brunswick
    NL = "NL"  # Newfoundland and Labrador
    NS = "NS"  # Nova Scotia
    NT = "NT"  # Northwest Territories
    NU = "NU"  # Nunavut
    ON = "ON"  # Ontario
    PE = "PE"  # Prince Edward Island
    QC = "QC"  # Quebec
    SK = "SK"  # Saskatchewan
    YT = "YT"  # Yukon


class TaxBracket(BaseModel):
    """A single tax bracket: income up to `up_to` is taxed at `rate`."""
    model_config = ConfigDict(frozen=True)

    up_to: Optional[float] = Field(None, description="Upper threshold; None means unbounded")
    rate: float = Field(..., ge=0, le=1, description="Marginal tax rate (0.0 to 1.0)")

    @field_validator('up_to')
    @classmethod
    def threshold_must_be_positive(cls, v):
        if v is not None and v < 0:
            raise ValueError('Threshold must be non-negative')
        return v

    @property
    def upper(self) -> float:
        return float('inf') if self.up_to is None else self.up_to


class JurisdictionTaxData(BaseModel):
    """Bracket and credit parameters for one jurisdiction in one year."""
    model_config = ConfigDict(frozen=True)

    jurisdiction: str = Field(..., description="'federal' or province code like 'BC', 'ON'")
    brackets: List[TaxBracket] = Field(..., min_length=1, description="Brackets sorted by upper threshold")
    lowest_rate: float = Field(..., ge=0, le=1)
    basic_personal_amount: float = Field(..., ge=0)
    age_amount_max: float = Field(0.0, ge=0)
    age_amount_threshold: float = Field(0.0, ge=0)
    age_amount_phase_out_rate: float = Field(0.0, ge=0, le=1)
    pension_credit_base: float = Field(0.0, ge=0)
    # Federal only
    oas_clawback_threshold: Optional[float] = Field(None, ge=0)
    oas_clawback_rate: Optional[float] = Field(None, ge=0, le=1)
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Source, citation, notes")

    @field_validator('brackets')
    @classmethod
    def brackets_must_be_sorted(cls, v):
        uppers = [b.upper for b in v]
        if uppers != sorted(uppers):
            raise ValueError('Brackets must be sorted by threshold')
        if v[-1].up_to is not None:
            raise ValueError('Last bracket must be unbounded')
        if any(b.up_to is None for b in v[:-1]):
            raise ValueError('Only the last bracket may be unbounded')
        return v

    @field_validator('jurisdiction')
    @classmethod
    def jurisdiction_must_be_valid(cls, v):
        valid = ['federal'] + [p.value for p in Province]
        if v not in valid:
            raise ValueError(f'Jurisdiction must be one of: {valid}')
        return v


class TaxYearTables(BaseModel):
    """Federal and provincial tables for a specific year."""
    model_config = ConfigDict(frozen=True)

    year: int
    federal: JurisdictionTaxData
    provincial: JurisdictionTaxData
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode='after')
    def federal_carries_clawback(self):
        if self.federal.jurisdiction != 'federal':
            raise ValueError('Federal tables must use the federal jurisdiction')
        if self.provincial.jurisdiction == 'federal':
            raise ValueError('Provincial tables need a province code')
        if self.federal.oas_clawback_threshold is None or self.federal.oas_clawback_rate is None:
            raise ValueError('Federal tables need an OAS clawback threshold and rate')
        return self

    @property
    def oas_clawback_threshold(self) -> float:
        return self.federal.oas_clawback_threshold

    @property
    def oas_clawback_rate(self) -> float:
        return self.federal.oas_clawback_rate


TAXABLE_INCOME_FIELDS = (
    "employment", "pension_db", "rrsp_withdrawal", "rrif_withdrawal",
    "lif_withdrawal", "cpp", "oas",
)


class IncomeSources(BaseModel):
    """One person's income for one year, by bucket."""
    employment: float = 0.0
    pension_db: float = 0.0
    rrsp_withdrawal: float = 0.0
    rrif_withdrawal: float = 0.0
    lif_withdrawal: float = 0.0
    cpp: float = 0.0
    oas: float = 0.0
    # Non-taxable
    tfsa_withdrawal: float = 0.0

    @property
    def taxable_income(self) -> float:
        """Sum of taxable buckets, each floored at zero."""
        return sum(max(0.0, getattr(self, name)) for name in TAXABLE_INCOME_FIELDS)


class CreditsToggles(BaseModel):
    """Independent switches for the non-refundable credits."""
    use_bpa: bool = True
    use_age_amount: bool = True
    use_pension_credit: bool = True


class JurisdictionCredits(BaseModel):
    bpa: float = 0.0
    age: float = 0.0
    pension: float = 0.0
    total: float = 0.0


class CreditsDetail(BaseModel):
    federal: JurisdictionCredits = Field(default_factory=JurisdictionCredits)
    provincial: JurisdictionCredits = Field(default_factory=JurisdictionCredits)
    total: float = 0.0


class PersonTaxResult(BaseModel):
    """Tax outcome for one person in one year."""
    name: str
    age: int
    taxable_income: float
    eligible_pension_income: float
    federal_tax_before_credits: float
    provincial_tax_before_credits: float
    credits: CreditsDetail
    oas_clawback: float
    total_tax: float
    after_tax_income: float

    # Detailed bracket breakdown
    federal_breakdown: List[Dict[str, Optional[float]]] = Field(default_factory=list)
    provincial_breakdown: List[Dict[str, Optional[float]]] = Field(default_factory=list)


class SpouseInput(BaseModel):
    name: str
    age: int = Field(..., ge=0)
    incomes: IncomeSources = Field(default_factory=IncomeSources)


class PensionSplitting(BaseModel):
    enabled: bool = False
    # Choose the split that minimizes combined tax plus clawback
    optimize: bool = False
    step: float = Field(100.0, ge=0)


class HouseholdTaxInputs(BaseModel):
    """One tax-year request for a two-person household."""
    tax_year: int
    spouse_a: SpouseInput
    spouse_b: SpouseInput
    credits: CreditsToggles = Field(default_factory=CreditsToggles)
    pension_splitting: PensionSplitting = Field(default_factory=PensionSplitting)


class HouseholdTotals(BaseModel):
    taxable_income: float
    total_tax: float
    after_tax_income: float
    oas_clawback: float


class SplitDecision(BaseModel):
    enabled: bool
    chosen_split_amount: float = 0.0
    donor: Optional[str] = None
    recipient: Optional[str] = None
    evaluated_candidates: int = 0


class SpouseSplitTrace(BaseModel):
    pre_split_eligible_pension_income: float
    post_split_eligible_pension_income: float
    incomes_used: IncomeSources


class HouseholdDebug(BaseModel):
    tax_year: int
    tables_year: int
    splitting: SplitDecision
    spouse_a: SpouseSplitTrace
    spouse_b: SpouseSplitTrace


class HouseholdTaxResult(BaseModel):
    """Per-person and combined tax, with the split decision trace."""
    spouse_a: PersonTaxResult
    spouse_b: PersonTaxResult
    household: HouseholdTotals
    debug: HouseholdDebug
