"""
Streamlit page for the retirement withdrawal planner.
"""
import logging
import os
import sys
from datetime import date
import pandas as pd
import plotly.express as px
import streamlit as st

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from retirement.engine import WithdrawalScheduler, check_row_invariants
from retirement.export import schedule_to_frame
from retirement.models import (
    HouseholdMember, LifMode, PhaseAges, PhaseSpending, PlanConfig, RetirementBalances,
    TaxSettings, WithdrawalPlan, WithdrawalSource
)
from retirement.settings import get_settings
from app.utils import (
    BALANCE_COLUMNS, SOURCE_LABELS, format_ceiling, format_currency,
    get_lif_mode_options, get_withdrawal_order_options
)

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


# Page configuration
st.set_page_config(
    page_title="Retirement Drawdown Planner",
    page_icon="🍁",
    layout="wide",
    initial_sidebar_state="expanded"
)


def member_inputs(label: str, defaults: dict) -> HouseholdMember:
    """Sidebar inputs for one person."""
    st.subheader(label)
    return HouseholdMember(
        name=st.text_input(f"{label} name", value=defaults["name"]),
        retire_age=int(st.number_input(f"{label} retirement age", 50, 80, defaults["retire_age"])),
        db_pension=st.number_input(f"{label} DB pension ($/yr)", 0.0, value=defaults["db_pension"], step=1000.0),
        cpp=st.number_input(f"{label} CPP ($/yr)", 0.0, value=defaults["cpp"], step=500.0),
        oas=st.number_input(f"{label} OAS ($/yr)", 0.0, value=defaults["oas"], step=500.0),
    )


def plan_inputs():
    """Collect the plan configuration, starting balances and retirement year."""
    with st.sidebar:
        st.title("Plan")

        retirement_year = int(st.number_input("Retirement year", 2000, 2100, date.today().year))
        baseline_year = int(st.number_input("Dollars as of year", 2000, 2100, date.today().year))
        inflation = st.number_input("Expected inflation", 0.0, 0.2, 0.02, step=0.005, format="%.3f")
        nominal_return = st.number_input("Expected nominal return", -0.5, 0.5, 0.05, step=0.005, format="%.3f")

        st.divider()
        spouse_a = member_inputs("Person A", {
            "name": "A", "retire_age": 60, "db_pension": 40000.0, "cpp": 15000.0, "oas": 8800.0
        })
        spouse_b = member_inputs("Person B", {
            "name": "B", "retire_age": 60, "db_pension": 0.0, "cpp": 9000.0, "oas": 8800.0
        })
        cpp_start_age = int(st.slider("CPP start age", 60, 70, 70))
        oas_start_age = int(st.slider("OAS start age", 65, 70, 70))

        st.divider()
        st.subheader("Spending (after tax)")
        go_go = st.number_input("Go-Go ($/yr)", 0.0, value=90000.0, step=1000.0)
        slow_go = st.number_input("Slow-Go ($/yr)", 0.0, value=75000.0, step=1000.0)
        no_go = st.number_input("No-Go ($/yr)", 0.0, value=60000.0, step=1000.0)
        go_go_end = int(st.number_input("Go-Go ends at age", 50, 110, 75))
        slow_go_end = int(st.number_input("Slow-Go ends at age", 50, 110, 85))
        end_age = int(st.number_input("Plan ends at age", 50, 110, 95))

        st.divider()
        st.subheader("Balances at retirement")
        balances = RetirementBalances(
            rrsp=st.number_input("RRSP", 0.0, value=600000.0, step=10000.0),
            lira=st.number_input("LIRA", 0.0, value=150000.0, step=10000.0),
            tfsa=st.number_input("TFSA", 0.0, value=200000.0, step=10000.0),
            fhsa=st.number_input("FHSA", 0.0, value=0.0, step=1000.0),
            non_registered=st.number_input("Non-registered", 0.0, value=100000.0, step=10000.0),
        )

        st.divider()
        st.subheader("Withdrawals")
        order_options = get_withdrawal_order_options()
        labels = {o["value"]: o["label"] for o in order_options}
        order = st.multiselect(
            "Withdrawal order",
            options=[o["value"] for o in order_options],
            default=[o["value"] for o in order_options],
            format_func=lambda x: labels[x],
        )
        lif_options = get_lif_mode_options()
        lif_mode = st.selectbox(
            "LIF draw limit",
            options=[o["value"] for o in lif_options],
            index=1,
            format_func=lambda x: {o["value"]: o["label"] for o in lif_options}[x],
        )
        force_lif = st.checkbox("Start LIF minimum at retirement", value=True)
        allow_tfsa = st.checkbox("Allow TFSA withdrawals", value=True)
        avoid_clawback = st.checkbox("Stay below the OAS clawback threshold", value=True)
        use_glide = st.checkbox("Deplete RRIF by a target age", value=False)
        deplete_by = int(st.number_input("Deplete RRIF by age", 71, 110, 90)) if use_glide else None
        front_load = st.slider("RRIF front-loading", 0.0, 1.0, 0.0) if use_glide else 0.0
        roll_fhsa = st.checkbox("Roll FHSA into RRSP at retirement", value=True)
        tfsa_room = st.number_input("TFSA room at retirement", 0.0, value=0.0, step=1000.0)
        tfsa_new_room = st.number_input("New TFSA room per year", 0.0, value=14000.0, step=500.0)

        st.divider()
        splitting = st.checkbox("Optimize pension income splitting", value=True)

    config = PlanConfig(
        spouse_a=spouse_a,
        spouse_b=spouse_b,
        baseline_year=baseline_year,
        expected_inflation=inflation,
        expected_nominal_return=nominal_return,
        cpp_start_age=cpp_start_age,
        oas_start_age=oas_start_age,
        spending=PhaseSpending(go_go=go_go, slow_go=slow_go, no_go=no_go),
        phase_ages=PhaseAges(go_go_end_age=go_go_end, slow_go_end_age=slow_go_end, end_age=end_age),
        withdrawals=WithdrawalPlan(
            order=[WithdrawalSource(value) for value in order],
            allow_tfsa=allow_tfsa,
            avoid_oas_clawback=avoid_clawback,
            force_lif_from_retirement=force_lif,
            lif_mode=LifMode(lif_mode),
            rrif_deplete_by_age=deplete_by,
            rrif_front_load=front_load,
            tfsa_room_at_retirement=tfsa_room,
            tfsa_new_room_per_year=tfsa_new_room,
            roll_fhsa_into_rrsp=roll_fhsa,
        ),
        tax=TaxSettings(enable_pension_splitting=splitting),
    )
    return config, balances, retirement_year


def show_schedule(config: PlanConfig, balances: RetirementBalances, retirement_year: int):
    """Run the scheduler and render the results."""
    rows = WithdrawalScheduler(config).build_schedule(retirement_year, balances)
    if not rows:
        st.info("The plan has no years. Check the retirement and end ages.")
        return

    problems = [message for row in rows for message in check_row_invariants(row)]
    for message in problems:
        logger.error(message)
    if problems:
        st.error(f"{len(problems)} schedule consistency problem(s); see the log.")

    dollars = st.radio("Show amounts in", ["nominal", "real"], horizontal=True)
    df = schedule_to_frame(rows, dollars, config.baseline_year, config.expected_inflation)

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Plan years", len(rows))
    with col2:
        st.metric("Total tax", format_currency(df["tax"].sum()))
    with col3:
        st.metric("Total shortfall", format_currency(df["shortfall"].sum()))
    with col4:
        st.metric("Ending balance", format_currency(df["end_total"].iloc[-1]))

    tab1, tab2, tab3 = st.tabs(["Balances", "Schedule", "Year detail"])

    with tab1:
        balance_df = df[list(BALANCE_COLUMNS)].rename(columns=BALANCE_COLUMNS).reset_index()
        fig = px.area(
            balance_df,
            x="year",
            y=list(BALANCE_COLUMNS.values()),
            title=f"Ending balances ({dollars} dollars)",
        )
        fig.update_layout(xaxis_title="Year", yaxis_title="Balance ($)")
        st.plotly_chart(fig, use_container_width=True)

    with tab2:
        st.dataframe(df.round(0), use_container_width=True)

    with tab3:
        year = st.selectbox("Year", options=[row.year for row in rows])
        row = next(r for r in rows if r.year == year)
        col_a, col_b = st.columns(2)
        with col_a:
            st.metric("Phase", row.phase.value)
            st.metric("Taxable income A", format_currency(row.debug.taxable_income_a))
            st.metric("Taxable income B", format_currency(row.debug.taxable_income_b))
            st.metric("Taxable income ceiling", format_ceiling(row.debug.taxable_income_ceiling))
        with col_b:
            st.metric("Tax", format_currency(row.debug.tax))
            st.metric("OAS clawback", format_currency(row.debug.oas_clawback_a + row.debug.oas_clawback_b))
            st.metric("RRIF minimum", format_currency(row.debug.rrif_min_required))
            st.metric("Solver iterations", row.debug.iterations)

        withdrawals = pd.DataFrame([
            {"Source": SOURCE_LABELS[source], "Amount": getattr(row.withdrawals, source.value)}
            for source in WithdrawalSource if source != WithdrawalSource.PENSION
        ])
        st.dataframe(withdrawals, use_container_width=True, hide_index=True)
        st.json(row.debug.model_dump(mode="json"))


def main():
    """Main application."""
    st.title("🍁 Retirement Drawdown Planner")
    st.markdown("### Year-by-year withdrawals for a BC couple, after federal and provincial tax")

    try:
        config, balances, retirement_year = plan_inputs()
    except ValueError as e:
        st.error(f"Invalid plan: {e}")
        return

    show_schedule(config, balances, retirement_year)


if __name__ == "__main__":
    main()
