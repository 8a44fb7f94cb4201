"""
Tax tables loader for importing/exporting tax data from JSON files.
"""
import json
import os
from typing import Dict, List, Optional, Any
import logging
from .models import TaxYearTables, JurisdictionTaxData, TaxBracket

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")


class TaxTableLoader:
    """Loader for tax table data from JSON files."""

    def __init__(self, data_dir: Optional[str] = None):
        """
        Initialize the loader.

        Args:
            data_dir: Directory containing tax table data files
        """
        self.data_dir = os.path.abspath(data_dir or DEFAULT_DATA_DIR)

    def load_from_json(self, filepath: str) -> TaxYearTables:
        """
        Load tax tables from a JSON file.

        Args:
            filepath: Path to JSON file

        Returns:
            TaxYearTables parsed from JSON
        """
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        return self.parse_json_data(data)

    def load_year(self, year: int) -> Optional[TaxYearTables]:
        """
        Load tax tables for a specific year from the data directory.

        Args:
            year: Tax year to load

        Returns:
            TaxYearTables if found, None otherwise
        """
        json_path = os.path.join(self.data_dir, f"tax_tables_{year}.json")
        if os.path.exists(json_path):
            return self.load_from_json(json_path)

        # Try alternative naming
        json_path = os.path.join(self.data_dir, f"{year}_tax_tables.json")
        if os.path.exists(json_path):
            return self.load_from_json(json_path)

        logger.warning(f"No tax table file found for year {year}")
        return None

    def load_all(self) -> List[TaxYearTables]:
        """
        Load every tax table file in the data directory.

        Returns:
            List of TaxYearTables sorted by year
        """
        tables = []
        if not os.path.isdir(self.data_dir):
            logger.warning(f"Tax table directory {self.data_dir} does not exist")
            return tables

        for filename in sorted(os.listdir(self.data_dir)):
            if filename.endswith(".json") and "tax_tables" in filename:
                tables.append(self.load_from_json(os.path.join(self.data_dir, filename)))

        tables.sort(key=lambda t: t.year)
        logger.info(f"Loaded {len(tables)} tax table year(s) from {self.data_dir}")
        return tables

    def export_to_json(self, tax_tables: TaxYearTables, filepath: str) -> None:
        """
        Export tax tables to a JSON file.

        Args:
            tax_tables: TaxYearTables to export
            filepath: Path to save JSON file
        """
        data = self.serialize_to_dict(tax_tables)

        # Ensure directory exists
        os.makedirs(os.path.dirname(os.path.abspath(filepath)), exist_ok=True)

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def validate_tax_tables(self, tax_tables: TaxYearTables) -> List[str]:
        """
        Validate tax tables for consistency and completeness.

        Args:
            tax_tables: TaxYearTables to validate

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for name, data in [("federal", tax_tables.federal), ("provincial", tax_tables.provincial)]:
            rates = [b.rate for b in data.brackets]
            if rates != sorted(rates):
                errors.append(f"Marginal rates are not progressive for {name}")

            if abs(data.lowest_rate - rates[0]) > 1e-9:
                errors.append(
                    f"Lowest rate {data.lowest_rate} doesn't match first bracket rate {rates[0]} for {name}"
                )

            if data.age_amount_max > 0 and data.age_amount_phase_out_rate <= 0:
                errors.append(f"Age amount has no phase-out rate for {name}")

        if tax_tables.oas_clawback_threshold <= 0:
            errors.append(f"Invalid OAS clawback threshold: {tax_tables.oas_clawback_threshold}")

        if tax_tables.oas_clawback_rate <= 0:
            errors.append(f"Invalid OAS clawback rate: {tax_tables.oas_clawback_rate}")

        return errors

    def parse_json_data(self, data: Dict[str, Any]) -> TaxYearTables:
        """Parse JSON data into TaxYearTables."""
        return TaxYearTables(
            year=data["year"],
            federal=self._parse_jurisdiction_data(data["federal"], "federal"),
            provincial=self._parse_jurisdiction_data(
                data["provincial"], data["provincial"]["jurisdiction"]
            ),
            metadata=data.get("metadata", {}),
        )

    def _parse_jurisdiction_data(self, data: Dict[str, Any], jurisdiction: str) -> JurisdictionTaxData:
        """Parse jurisdiction tax data from JSON."""
        brackets = [
            TaxBracket(up_to=b["up_to"], rate=b["rate"])
            for b in data["brackets"]
        ]

        return JurisdictionTaxData(
            jurisdiction=jurisdiction,
            brackets=brackets,
            lowest_rate=data["lowest_rate"],
            basic_personal_amount=data["basic_personal_amount"],
            age_amount_max=data.get("age_amount_max", 0.0),
            age_amount_threshold=data.get("age_amount_threshold", 0.0),
            age_amount_phase_out_rate=data.get("age_amount_phase_out_rate", 0.0),
            pension_credit_base=data.get("pension_credit_base", 0.0),
            oas_clawback_threshold=data.get("oas_clawback_threshold"),
            oas_clawback_rate=data.get("oas_clawback_rate"),
            metadata=data.get("metadata", {}),
        )

    def serialize_to_dict(self, tax_tables: TaxYearTables) -> Dict[str, Any]:
        """Serialize TaxYearTables to dictionary for JSON export."""
        return tax_tables.model_dump(mode="json")
