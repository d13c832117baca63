"""
Rating configuration loader (rating areas, base rates, carriers, tiers).

The configuration is read once at startup and treated as immutable for the
lifetime of the process.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from benefits_enrollment.contracts.interfaces import CoverageType, MetalTier

logger = logging.getLogger(__name__)

STANDARD_TIER = "Standard"

_ZIP5_RE = re.compile(r"^[0-9]{5}$")


class TierConfig(BaseModel):
    """Plan-design constants for one tier. Amounts are in cents."""

    factor: float = Field(gt=0)
    deductible: int = Field(ge=0)
    out_of_pocket_max: int = Field(ge=0)


class CarrierConfig(BaseModel):
    id: str
    name: str
    coverage_types: List[CoverageType]
    network: str = "PPO"


class AgeRatingConfig(BaseModel):
    reference_age: float = Field(default=35.0, gt=0)
    factor_min: float = Field(default=0.6, gt=0)
    factor_max: float = Field(default=2.5, gt=0)
    default_average_age: float = Field(default=35.0, gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "AgeRatingConfig":
        if self.factor_min > self.factor_max:
            raise ValueError("age factor_min must not exceed factor_max")
        return self


class RatingConfig(BaseModel):
    """Complete rating configuration"""

    default_area: int = Field(default=1, ge=1)
    zip_areas: Dict[int, List[str]]
    base_rates: Dict[int, Dict[CoverageType, int]]
    carriers: List[CarrierConfig]
    medical_tiers: List[MetalTier] = Field(
        default_factory=lambda: [MetalTier.BRONZE, MetalTier.SILVER, MetalTier.GOLD]
    )
    tiers: Dict[str, TierConfig]
    age_rating: AgeRatingConfig = Field(default_factory=AgeRatingConfig)

    @model_validator(mode="after")
    def _check_tables(self) -> "RatingConfig":
        seen: Dict[str, int] = {}
        for area, zips in self.zip_areas.items():
            for zip_code in zips:
                if not _ZIP5_RE.fullmatch(zip_code):
                    raise ValueError(f"Invalid ZIP '{zip_code}' in rating area {area}")
                if zip_code in seen and seen[zip_code] != area:
                    raise ValueError(f"ZIP {zip_code} is mapped to rating areas {seen[zip_code]} and {area}")
                seen[zip_code] = area

        for tier in self.medical_tiers:
            if tier.value not in self.tiers:
                raise ValueError(f"Tier table is missing medical tier '{tier.value}'")
        if STANDARD_TIER not in self.tiers:
            raise ValueError(f"Tier table is missing '{STANDARD_TIER}'")

        for area, rates in self.base_rates.items():
            for coverage_type, rate in rates.items():
                if rate <= 0:
                    raise ValueError(f"Base rate for area {area}/{coverage_type.value} must be > 0")
        return self


def default_rating_config_path() -> Path:
    return Path(__file__).parent.parent.parent / "config" / "rating_config.yml"


def load_rating_config(config_path: Optional[Path] = None) -> RatingConfig:
    """
    Load and validate rating configuration from YAML file

    Args:
        config_path: Path to config file. Defaults to config/rating_config.yml

    Returns:
        Validated RatingConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config doesn't match schema
    """
    if config_path is None:
        config_path = default_rating_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"Rating config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        cfg = RatingConfig(**data)
        logger.info(
            "Successfully loaded rating config from %s (%d areas, %d carriers)",
            config_path, len(cfg.zip_areas), len(cfg.carriers),
        )
        return cfg
    except ValidationError as e:
        logger.error("Rating config validation failed: %s", e)
        raise
