"""
Year-keyed lookup over loaded tax tables.
"""
from functools import lru_cache
from typing import Iterable, List, Optional
import logging
from .loader import TaxTableLoader
from .models import TaxYearTables

logger = logging.getLogger(__name__)


class TaxTableStore:
    """Immutable set of tax tables, one per supported year."""

    def __init__(self, tables: Iterable[TaxYearTables]):
        self._tables: List[TaxYearTables] = sorted(tables, key=lambda t: t.year)
        if not self._tables:
            raise ValueError("At least one tax table year is required")

        years = [t.year for t in self._tables]
        if len(set(years)) != len(years):
            raise ValueError(f"Duplicate tax table years: {years}")

    @property
    def years(self) -> List[int]:
        return [t.year for t in self._tables]

    def pick(self, tax_year: int) -> TaxYearTables:
        """
        Pick the tables for a tax year.

        Uses the latest table whose year is <= tax_year; if every table is
        newer than the request, falls back to the earliest table.
        """
        chosen = self._tables[0]
        for tables in self._tables:
            if tables.year <= tax_year:
                chosen = tables
            else:
                break

        if chosen.year != tax_year:
            logger.debug(f"Tax year {tax_year} uses {chosen.year} tables")
        return chosen

    def oas_clawback_threshold(self, tax_year: int) -> float:
        return self.pick(tax_year).oas_clawback_threshold

    def oas_clawback_rate(self, tax_year: int) -> float:
        return self.pick(tax_year).oas_clawback_rate


@lru_cache(maxsize=None)
def default_store(data_dir: Optional[str] = None) -> TaxTableStore:
    """Store built from the packaged (or configured) JSON table files."""
    return TaxTableStore(TaxTableLoader(data_dir).load_all())
