"""
Withdrawal sources and the shared priority-order allocation routine.
"""
import math
from enum import Enum
from typing import Dict, Iterable, NamedTuple
from pydantic import BaseModel
from .models import RetirementBalances, WithdrawalCaps, WithdrawalSource, WithdrawalSources


class CapRule(str, Enum):
    """Structural limit applied on top of the explicit per-source cap."""
    NONE = "none"
    HOUSEHOLD_HEADROOM = "household_headroom"
    LIF_MAXIMUM = "lif_maximum"


class SourceDescriptor(NamedTuple):
    source: WithdrawalSource
    taxable: bool
    cap_rule: CapRule


# FHSA is treated like an RRSP on the way out. Non-registered capital gains
# are not modeled, so those draws are after-tax cash.
SOURCE_DESCRIPTORS: Dict[WithdrawalSource, SourceDescriptor] = {
    WithdrawalSource.FHSA: SourceDescriptor(WithdrawalSource.FHSA, True, CapRule.HOUSEHOLD_HEADROOM),
    WithdrawalSource.RRSP: SourceDescriptor(WithdrawalSource.RRSP, True, CapRule.HOUSEHOLD_HEADROOM),
    WithdrawalSource.LIRA: SourceDescriptor(WithdrawalSource.LIRA, True, CapRule.LIF_MAXIMUM),
    WithdrawalSource.NON_REGISTERED: SourceDescriptor(WithdrawalSource.NON_REGISTERED, False, CapRule.NONE),
    WithdrawalSource.TFSA: SourceDescriptor(WithdrawalSource.TFSA, False, CapRule.NONE),
}

# Second pass when the priority order cannot cover the need
FALLBACK_ORDER = [WithdrawalSource.TFSA, WithdrawalSource.NON_REGISTERED]


class TaxableHeadroom(BaseModel):
    """Additional taxable dollars allowed before the guardrail ceiling."""
    spouse_a: float = math.inf
    spouse_b: float = math.inf
    household: float = math.inf


def explicit_cap(caps: WithdrawalCaps, source: WithdrawalSource) -> float:
    cap = getattr(caps, source.value)
    return cap if cap > 0 else math.inf


def structural_cap(descriptor: SourceDescriptor, headroom: TaxableHeadroom, lif_remaining: float) -> float:
    if descriptor.cap_rule == CapRule.HOUSEHOLD_HEADROOM:
        return headroom.household
    if descriptor.cap_rule == CapRule.LIF_MAXIMUM:
        # The LIF belongs to spouse A
        return min(max(0.0, lif_remaining), headroom.spouse_a)
    return math.inf


def apply_withdrawal_order(
    need: float,
    order: Iterable[WithdrawalSource],
    balances: RetirementBalances,
    withdrawals: WithdrawalSources,
    caps: WithdrawalCaps,
    allow_tfsa: bool,
    avoid_taxable: bool,
    headroom: TaxableHeadroom,
    lif_remaining: float,
    gross_up: float = 1.0,
) -> float:
    """
    Draw enough to cover an after-tax `need` from sources in priority order.

    Balances and withdrawals are updated in place. Taxable sources are drawn
    grossed up for tax; each source gives at most its balance, what is left of
    its explicit annual cap and its structural cap. Headroom under the
    guardrail ceiling shrinks as taxable draws are made.

    Args:
        need: After-tax amount wanted
        order: Sources in priority order; "pension" entries are skipped
        balances: Current balances, reduced by what is drawn
        withdrawals: This year's withdrawals so far, increased by what is drawn
        caps: Explicit per-source annual caps (0 = uncapped)
        allow_tfsa: Whether TFSA may be drawn
        avoid_taxable: Skip every taxable source
        headroom: Taxable headroom under the guardrail ceiling
        lif_remaining: LIF maximum still available this year
        gross_up: Multiplier turning after-tax dollars into taxable draws

    Returns:
        After-tax need left unmet
    """
    gross_up = max(1.0, gross_up)
    headroom_a = headroom.spouse_a
    headroom_b = headroom.spouse_b
    household = headroom.household

    for source in order:
        if need <= 0:
            break

        descriptor = SOURCE_DESCRIPTORS.get(source)
        if descriptor is None:
            continue
        if source == WithdrawalSource.TFSA and not allow_tfsa:
            continue
        if avoid_taxable and descriptor.taxable:
            continue

        drawn = getattr(withdrawals, source.value)
        cap_left = max(0.0, explicit_cap(caps, source) - drawn)
        structural = structural_cap(
            descriptor,
            TaxableHeadroom(spouse_a=headroom_a, spouse_b=headroom_b, household=household),
            lif_remaining,
        )
        balance = max(0.0, getattr(balances, source.value))
        factor = gross_up if descriptor.taxable else 1.0
        amount = max(0.0, min(need * factor, balance, cap_left, structural))
        if amount <= 0:
            continue

        setattr(balances, source.value, balance - amount)
        setattr(withdrawals, source.value, drawn + amount)
        need -= amount / factor

        if source == WithdrawalSource.LIRA:
            lif_remaining -= amount
            headroom_a = max(0.0, headroom_a - amount)
        elif descriptor.taxable:
            # RRSP and FHSA draws are attributed half to each spouse
            headroom_a = max(0.0, headroom_a - amount / 2)
            headroom_b = max(0.0, headroom_b - amount / 2)
        if descriptor.taxable:
            household = min(household, 2 * min(headroom_a, headroom_b))

    return max(0.0, need)
