"""API routes."""

from fastapi import APIRouter

from nearby_offers.routes import commerces, offers

api_router = APIRouter()

# Commerce discovery + follows
api_router.include_router(commerces.router, prefix="/v1/commerces", tags=["commerces"])

# Offer feed
api_router.include_router(offers.router, prefix="/v1/offers", tags=["offers"])
