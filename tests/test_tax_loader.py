"""
Tests for tax table loading and year selection.
"""
import pytest
from tax.loader import TaxTableLoader
from tax.store import TaxTableStore, default_store
from tax.models import TaxBracket


def test_packaged_tables_load_and_validate():
    """The shipped 2025 tables parse and pass validation."""
    loader = TaxTableLoader()
    tables = loader.load_year(2025)

    assert tables is not None
    assert tables.year == 2025
    assert tables.provincial.jurisdiction == "BC"
    assert tables.federal.brackets[-1].up_to is None
    assert tables.oas_clawback_threshold == 91000
    assert loader.validate_tax_tables(tables) == []


def test_missing_year_returns_none(tmp_path):
    """Test loading a year with no file."""
    loader = TaxTableLoader(str(tmp_path))
    assert loader.load_year(1999) is None
    assert loader.load_all() == []


def test_export_and_reload(tmp_path, make_tables):
    """Exported tables load back unchanged."""
    loader = TaxTableLoader(str(tmp_path))
    tables = make_tables(year=2030)

    loader.export_to_json(tables, str(tmp_path / "tax_tables_2030.json"))
    reloaded = loader.load_year(2030)

    assert reloaded == tables
    assert [t.year for t in loader.load_all()] == [2030]


def test_validate_tax_tables_reports_problems(make_tables):
    """Regressive rates and a mismatched lowest rate are reported."""
    tables = make_tables()
    bad = tables.model_copy(update={
        "provincial": tables.provincial.model_copy(update={
            "brackets": [TaxBracket(up_to=40000, rate=0.12), TaxBracket(up_to=None, rate=0.08)],
        })
    })

    errors = TaxTableLoader().validate_tax_tables(bad)
    assert any("not progressive" in e for e in errors)
    assert any("Lowest rate" in e for e in errors)


def test_store_picks_latest_year_not_after_request(make_tables):
    """Test the year selection rule."""
    store = TaxTableStore([make_tables(2027, oas_threshold=95000), make_tables(2025)])

    assert store.years == [2025, 2027]
    assert store.pick(2025).year == 2025
    assert store.pick(2026).year == 2025
    assert store.pick(2040).year == 2027
    # Requests before the earliest table fall back to the earliest
    assert store.pick(2010).year == 2025
    assert store.oas_clawback_threshold(2028) == 95000


def test_store_rejects_empty_and_duplicate_years(make_tables):
    """Test store construction errors."""
    with pytest.raises(ValueError):
        TaxTableStore([])

    with pytest.raises(ValueError):
        TaxTableStore([make_tables(2025), make_tables(2025)])


def test_default_store():
    """The default store serves the packaged tables."""
    store = default_store()
    assert 2025 in store.years
    assert store.oas_clawback_rate(2025) == pytest.approx(0.15)
