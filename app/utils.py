"""
Formatting helpers for the retirement planner page.
"""
from typing import Dict, List, Optional
from retirement.models import LifMode, WithdrawalSource


def format_currency(amount: float) -> str:
    """Format currency amount with commas and no cents."""
    return f"${amount:,.0f}"


def format_percent(rate: float) -> str:
    """Format a 0-1 rate as a percentage."""
    return f"{rate * 100:.1f}%"


def format_ceiling(ceiling: Optional[float]) -> str:
    if ceiling is None:
        return "None"
    return format_currency(ceiling)


SOURCE_LABELS: Dict[WithdrawalSource, str] = {
    WithdrawalSource.PENSION: "DB pension",
    WithdrawalSource.FHSA: "FHSA",
    WithdrawalSource.RRSP: "RRSP / RRIF",
    WithdrawalSource.LIRA: "LIRA / LIF",
    WithdrawalSource.NON_REGISTERED: "Non-registered",
    WithdrawalSource.TFSA: "TFSA",
}


def get_withdrawal_order_options() -> List[Dict[str, str]]:
    """Withdrawal sources as select options."""
    return [{"value": source.value, "label": label} for source, label in SOURCE_LABELS.items()]


def get_lif_mode_options() -> List[Dict[str, str]]:
    return [
        {"value": LifMode.MIN.value, "label": "Minimum"},
        {"value": LifMode.MID.value, "label": "Midpoint"},
        {"value": LifMode.MAX.value, "label": "Maximum"},
    ]


BALANCE_COLUMNS = {
    "end_rrsp": "RRSP / RRIF",
    "end_lira": "LIRA / LIF",
    "end_fhsa": "FHSA",
    "end_non_registered": "Non-registered",
    "end_tfsa": "TFSA",
}
