"""
API v1 router setup
"""
from fastapi import APIRouter

from bookwise.api.v1 import availability, bookings

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (booking pages)
# ============================================================================
api_v1_router.include_router(availability.router)
api_v1_router.include_router(bookings.router)


@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """API information and available endpoints"""
    return {
        "version": "1.0",
        "endpoints": {
            "availability": "/api/v1/availability",
            "bookings": "/api/v1/bookings",
        }
    }
