"""
Environment configuration for the retirement planner.
"""
import os
from functools import lru_cache
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()


class Settings(BaseModel):
    tax_tables_dir: Optional[str] = Field(None, description="Directory of tax_tables_<year>.json files")
    log_level: str = "INFO"
    pension_split_step: float = Field(500.0, gt=0)


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Settings read once from the environment (and a .env file, if present)."""
    return Settings(
        tax_tables_dir=os.getenv("RETIREMENT_TAX_TABLES_DIR") or None,
        log_level=os.getenv("RETIREMENT_LOG_LEVEL", "INFO").upper(),
        pension_split_step=float(os.getenv("RETIREMENT_PENSION_SPLIT_STEP", "500")),
    )
