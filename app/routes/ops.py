from fastapi import APIRouter

from app.schemas.group_listing import HealthResponse

router = APIRouter()


# Health check endpoint
@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness check for the hosting platform."""
    return HealthResponse(status="ok")
