"""
Tests for environment configuration.
"""
from retirement.engine import WithdrawalScheduler
from retirement.models import HouseholdMember, PhaseAges, PhaseSpending, PlanConfig, TaxSettings
from retirement.settings import get_settings


def make_config(tax=None):
    return PlanConfig(
        spouse_a=HouseholdMember(name="A", retire_age=65),
        spouse_b=HouseholdMember(name="B", retire_age=65),
        baseline_year=2026,
        spending=PhaseSpending(go_go=1, slow_go=1, no_go=1),
        phase_ages=PhaseAges(go_go_end_age=65, slow_go_end_age=65, end_age=65),
        tax=tax or TaxSettings(),
    )


def test_settings_read_from_environment(monkeypatch):
    """Environment variables override the defaults."""
    monkeypatch.setenv("RETIREMENT_LOG_LEVEL", "debug")
    monkeypatch.setenv("RETIREMENT_PENSION_SPLIT_STEP", "250")
    monkeypatch.delenv("RETIREMENT_TAX_TABLES_DIR", raising=False)
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.log_level == "DEBUG"
        assert settings.pension_split_step == 250
        assert settings.tax_tables_dir is None

        # Plans without their own step use the configured one
        assert WithdrawalScheduler(make_config()).split_step == 250
        assert WithdrawalScheduler(make_config(TaxSettings(pension_split_step=100))).split_step == 100
    finally:
        get_settings.cache_clear()
