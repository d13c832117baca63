"""
API endpoints for the rating engine: rating areas, carriers and census quotes.
"""

import logging

from fastapi import APIRouter, Depends

from benefits_enrollment.api.dependencies import Services, get_actor, get_services
from benefits_enrollment.api.schemas import QuoteOfferOut, QuoteRequestIn, QuoteResponse
from benefits_enrollment.contracts.interfaces import Actor

logger = logging.getLogger(__name__)

api = APIRouter()


@api.get("/rating-areas", tags=["Rating"])
async def list_rating_areas(services: Services = Depends(get_services)):
    return {"rating_areas": services.rating_table.areas()}


@api.get("/carriers", tags=["Rating"])
async def list_carriers(services: Services = Depends(get_services)):
    return {
        "carriers": [
            {
                "id": c.id,
                "name": c.name,
                "coverage_types": [ct.value for ct in c.coverage_types],
                "network": c.network,
            }
            for c in services.rating_config.carriers
        ]
    }


@api.post("/quotes/generate", response_model=QuoteResponse, tags=["Quotes"])
def generate_quote(
    payload: QuoteRequestIn,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
):
    """Price every carrier and tier for the submitted census."""
    offers = services.quote_generator.generate(payload.to_request())
    logger.info("Quote generated for actor=%s zip=%s offers=%d", actor.id, payload.zip_code, len(offers))
    return QuoteResponse(
        zip_code=payload.zip_code,
        rating_area=services.rating_table.rating_area_for(payload.zip_code),
        offers=[QuoteOfferOut.from_offer(o) for o in offers],
    )
