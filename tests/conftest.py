"""
Shared fixtures.
"""
import pytest
from tax.models import TaxBracket, JurisdictionTaxData, TaxYearTables


def build_tables(year=2025, oas_threshold=90000.0):
    """Small round-number tables for hand-checkable results."""
    federal = JurisdictionTaxData(
        jurisdiction="federal",
        brackets=[
            TaxBracket(up_to=50000, rate=0.15),
            TaxBracket(up_to=100000, rate=0.20),
            TaxBracket(up_to=None, rate=0.30),
        ],
        lowest_rate=0.15,
        basic_personal_amount=15000,
        age_amount_max=9000,
        age_amount_threshold=45000,
        age_amount_phase_out_rate=0.15,
        pension_credit_base=2000,
        oas_clawback_threshold=oas_threshold,
        oas_clawback_rate=0.15,
    )
    provincial = JurisdictionTaxData(
        jurisdiction="BC",
        brackets=[
            TaxBracket(up_to=40000, rate=0.05),
            TaxBracket(up_to=None, rate=0.10),
        ],
        lowest_rate=0.05,
        basic_personal_amount=12000,
        age_amount_max=5000,
        age_amount_threshold=40000,
        age_amount_phase_out_rate=0.15,
        pension_credit_base=1000,
    )
    return TaxYearTables(year=year, federal=federal, provincial=provincial)


@pytest.fixture
def make_tables():
    return build_tables
