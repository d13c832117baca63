"""
Quote generator - price every (coverage type, carrier, tier) combination for a census.

premium = base_rate(area, coverage) * age_factor * tier_factor * member_count

The generator has no I/O and no clock dependency: identical requests against
the same configuration always produce identical offers, in the same order.
"""

from __future__ import annotations

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from benefits_enrollment.contracts.interfaces import CoverageType, MetalTier, QuoteOffer, QuoteRequest
from benefits_enrollment.errors import InvalidRequest
from benefits_enrollment.rating.census import aggregate
from benefits_enrollment.rating.rating_table import RatingTable
from benefits_enrollment.utils.config_loader import STANDARD_TIER, CarrierConfig, RatingConfig

logger = logging.getLogger(__name__)

_ZIP_RE = re.compile(r"^[0-9]{5}(-[0-9]{4})?$")


class QuoteGenerator:
    def __init__(self, config: RatingConfig, rating_table: Optional[RatingTable] = None) -> None:
        self.config = config
        self.rating_table = rating_table or RatingTable(config)

    def generate(self, request: QuoteRequest) -> List[QuoteOffer]:
        coverage_types = self._validate(request)

        area = self.rating_table.rating_area_for(request.zip_code)
        census = aggregate(
            request.people,
            request.effective_date,
            default_average_age=self.config.age_rating.default_average_age,
        )
        age_factor = self.age_factor(census.average_age)
        members = max(census.member_count, 1)
        logger.info(
            "[Quote] zip=%s area=%s members=%s average_age=%.2f age_factor=%s coverage=%s",
            request.zip_code, area, census.member_count, census.average_age, age_factor,
            [c.value for c in coverage_types],
        )

        offers: List[QuoteOffer] = []
        for coverage in coverage_types:
            base_rate = Decimal(self.rating_table.base_rate(area, coverage))
            for carrier in self.carriers_for(coverage):
                for tier in self.tiers_for(coverage):
                    tier_name = tier.value if tier else STANDARD_TIER
                    design = self.config.tiers[tier_name]
                    premium = base_rate * age_factor * Decimal(str(design.factor)) * members
                    offers.append(
                        QuoteOffer(
                            carrier_id=carrier.id,
                            plan_label=f"{carrier.name} {tier_name} {carrier.network}",
                            coverage_type=coverage,
                            metal_tier=tier,
                            monthly_premium=int(premium.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
                            deductible=design.deductible,
                            out_of_pocket_max=design.out_of_pocket_max,
                            network=carrier.network,
                            rating_area=area,
                        )
                    )

        logger.info("[Quote] generated %d offers for area %s", len(offers), area)
        return offers

    def age_factor(self, average_age: float) -> Decimal:
        """average_age / reference_age, clamped to the configured bounds."""
        cfg = self.config.age_rating
        raw = Decimal(str(average_age)) / Decimal(str(cfg.reference_age))
        low, high = Decimal(str(cfg.factor_min)), Decimal(str(cfg.factor_max))
        return min(max(raw, low), high)

    def carriers_for(self, coverage: CoverageType) -> List[CarrierConfig]:
        return [c for c in self.config.carriers if coverage in c.coverage_types]

    def tiers_for(self, coverage: CoverageType) -> Sequence[Optional[MetalTier]]:
        if coverage == CoverageType.MEDICAL:
            return list(self.config.medical_tiers)
        return [None]

    @staticmethod
    def _validate(request: QuoteRequest) -> List[CoverageType]:
        if not request.coverage_types:
            raise InvalidRequest("At least one coverage type is required.")
        if not isinstance(request.zip_code, str) or not _ZIP_RE.fullmatch(request.zip_code.strip()):
            raise InvalidRequest(f"Invalid ZIP code '{request.zip_code}'. Expected 5 digits, optionally +4.")

        coverage_types: List[CoverageType] = []
        for raw in request.coverage_types:
            try:
                coverage = CoverageType(raw)
            except ValueError:
                raise InvalidRequest(f"Unknown coverage type '{raw}'.") from None
            if coverage not in coverage_types:
                coverage_types.append(coverage)
        return coverage_types
