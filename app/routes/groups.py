from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from slowapi import Limiter

from app.config import Settings
from app.core.logging_config import get_logger
from app.dependencies import get_listing_service
from app.schemas.group_listing import ErrorResponse, GroupListingResponse
from app.services.listing_service import ListingService

logger = get_logger(__name__)


def create_router(limiter: Limiter, app_settings: Settings) -> APIRouter:
    """Group listing routes, rate limited by the application's own limiter."""
    router = APIRouter()

    @router.get(
        "/groups",
        response_model=List[GroupListingResponse],
        status_code=status.HTTP_200_OK
    )
    # Plain def: the store reads from disk, so FastAPI runs this in its threadpool
    def list_groups(
        q: Optional[str] = Query(None, description="Case-insensitive text matched against group name and username"),
        listing_service: ListingService = Depends(get_listing_service)
    ):
        """
        List submitted groups, newest first.

        With ``q``, only groups whose name or submitter contains the text.
        """
        listings = listing_service.search(q)
        return [GroupListingResponse.from_model(listing) for listing in listings]

    @router.post(
        "/groups",
        response_model=GroupListingResponse,
        status_code=status.HTTP_201_CREATED,
        responses={
            400: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        }
    )
    @limiter.limit(app_settings.CREATE_RATE_LIMIT)
    async def create_group(
        request: Request,
        username: str = Form(""),
        groupName: str = Form(""),
        groupLink: str = Form(""),
        groupImage: Optional[UploadFile] = File(None),
        listing_service: ListingService = Depends(get_listing_service)
    ):
        """
        Submit a group listing (multipart form).

        Fields: username, groupName, groupLink, optional groupImage file.
        """
        logger.info(
            "api_create_group",
            username=username,
            group_name=groupName,
            has_image=bool(groupImage is not None and groupImage.filename)
        )

        listing = await listing_service.create(
            username=username,
            group_name=groupName,
            group_link=groupLink,
            image=groupImage,
        )

        return GroupListingResponse.from_model(listing)

    return router
