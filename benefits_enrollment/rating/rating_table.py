"""
Rating table: ZIP -> rating area, (rating area, coverage type) -> base rate.

Both lookups are pure. An unknown ZIP falls back to the configured default
area; an unknown (area, coverage type) pair raises `RateNotConfigured` rather
than pricing at zero.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Union

from benefits_enrollment.contracts.interfaces import CoverageType
from benefits_enrollment.errors import RateNotConfigured
from benefits_enrollment.utils.config_loader import RatingConfig

logger = logging.getLogger(__name__)


class RatingTable:
    def __init__(self, config: RatingConfig) -> None:
        self.default_area = config.default_area
        self._area_by_zip: Dict[str, int] = {
            zip_code: area
            for area, zips in config.zip_areas.items()
            for zip_code in zips
        }
        self._rates: Dict[int, Dict[CoverageType, int]] = {
            area: dict(rates) for area, rates in config.base_rates.items()
        }
        self._zip_areas = {area: sorted(zips) for area, zips in config.zip_areas.items()}

    def rating_area_for(self, zip_code: str) -> int:
        """Rating area for a ZIP or ZIP+4; the default area when unknown."""
        zip5 = (zip_code or "").strip()[:5]
        area = self._area_by_zip.get(zip5)
        if area is None:
            logger.debug("ZIP %s not in rating table, using default area %s", zip5, self.default_area)
            return self.default_area
        return area

    def base_rate(self, area: int, coverage_type: Union[CoverageType, str]) -> int:
        """Monthly base rate in cents."""
        coverage = CoverageType(coverage_type)
        rate = self._rates.get(area, {}).get(coverage)
        if rate is None:
            logger.warning("No base rate configured: area=%s coverage=%s", area, coverage.value)
            raise RateNotConfigured(area, coverage.value)
        return rate

    def areas(self) -> List[Dict[str, Any]]:
        return [{"rating_area": area, "zips": zips} for area, zips in sorted(self._zip_areas.items())]
