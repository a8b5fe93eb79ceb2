"""
Dependency injection for FastAPI routes.

The services are built once during startup (see ``app.main.lifespan``) and
kept on ``app.state``, so tests can swap them out with
``app.dependency_overrides[get_listing_service] = lambda: FakeService()``.
"""

from fastapi import Request

from app.services.listing_service import ListingService


def get_listing_service(request: Request) -> ListingService:
    """Provide the ListingService created at startup."""
    return request.app.state.listing_service
