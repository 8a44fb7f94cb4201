"""
Tabular views of a withdrawal schedule.
"""
import math
from typing import List, Optional
import pandas as pd
from .models import WithdrawalScheduleRow

MONEY_COLUMNS = [
    "target_after_tax_spending",
    "guaranteed_income",
    "benefits_income",
    "withdraw_fhsa",
    "withdraw_rrsp",
    "withdraw_lira",
    "withdraw_non_registered",
    "withdraw_tfsa",
    "tax",
    "oas_clawback",
    "surplus_to_tfsa",
    "surplus_to_non_reg",
    "shortfall",
    "end_fhsa",
    "end_rrsp",
    "end_lira",
    "end_non_registered",
    "end_tfsa",
    "end_total",
]


def to_real_dollars(nominal: float, inflation: float, years: int) -> float:
    """Deflate a nominal amount back to baseline-year dollars."""
    if years <= 0:
        return nominal
    divisor = (1 + inflation) ** years
    if not math.isfinite(divisor) or divisor == 0:
        return nominal
    return nominal / divisor


def schedule_to_frame(
    rows: List[WithdrawalScheduleRow],
    dollars: str = "nominal",
    baseline_year: Optional[int] = None,
    inflation: float = 0.0,
) -> pd.DataFrame:
    """
    Flatten schedule rows into a DataFrame, one row per plan year.

    Args:
        rows: Schedule rows
        dollars: "nominal" or "real"
        baseline_year: Year whose dollars "real" amounts are expressed in
            (defaults to the first row's year)
        inflation: Annual inflation used to deflate

    Returns:
        DataFrame indexed by year
    """
    if dollars not in ("nominal", "real"):
        raise ValueError(f"dollars must be 'nominal' or 'real', got {dollars!r}")

    records = []
    for row in rows:
        records.append({
            "year": row.year,
            "age_a": row.age_a,
            "age_b": row.age_b,
            "phase": row.phase.value,
            "target_after_tax_spending": row.target_after_tax_spending,
            "guaranteed_income": row.guaranteed_income,
            "benefits_income": row.benefits_income,
            "withdraw_fhsa": row.withdrawals.fhsa,
            "withdraw_rrsp": row.withdrawals.rrsp,
            "withdraw_lira": row.withdrawals.lira,
            "withdraw_non_registered": row.withdrawals.non_registered,
            "withdraw_tfsa": row.withdrawals.tfsa,
            "tax": row.debug.tax,
            "oas_clawback": row.debug.oas_clawback_a + row.debug.oas_clawback_b,
            "surplus_to_tfsa": row.surplus_invested_to_tfsa,
            "surplus_to_non_reg": row.surplus_invested_to_non_reg,
            "shortfall": row.debug.shortfall_after_tax,
            "end_fhsa": row.end_balances.fhsa,
            "end_rrsp": row.end_balances.rrsp,
            "end_lira": row.end_balances.lira,
            "end_non_registered": row.end_balances.non_registered,
            "end_tfsa": row.end_balances.tfsa,
            "end_total": row.end_balances.total,
            "ceiling_binding": row.debug.ceiling_binding,
            "iterations": row.debug.iterations,
        })

    df = pd.DataFrame.from_records(records, columns=[
        "year", "age_a", "age_b", "phase", *MONEY_COLUMNS, "ceiling_binding", "iterations"
    ])

    if dollars == "real" and not df.empty:
        base = baseline_year if baseline_year is not None else int(df["year"].iloc[0])
        years = df["year"] - base
        for column in MONEY_COLUMNS:
            df[column] = [
                to_real_dollars(value, inflation, int(offset))
                for value, offset in zip(df[column], years)
            ]

    return df.set_index("year")
