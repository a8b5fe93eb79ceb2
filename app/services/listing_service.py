"""
ListingService - submit and browse WhatsApp group listings

Flow for a submission:
1. Validate text fields (all required), then the group link prefix
2. Validate and store the optional image (UploadHandler)
3. Append the new record to the JSON document (JsonRecordStore)
4. If the append fails, the stored image is removed again

Reads always come straight from the document and are returned newest first.
Disk work is blocking, so async callers run it in the threadpool.
"""

import time
import uuid
from typing import List, Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from app.config import Settings
from app.core import metrics
from app.core.exceptions import StorageFault, ValidationError
from app.core.logging_config import get_logger
from app.db.json_store import JsonRecordStore
from app.models.group_listing import GroupListing
from app.services.upload_handler import UploadHandler

logger = get_logger(__name__)

FIELDS_REQUIRED_MESSAGE = "All fields are required."
INVALID_LINK_MESSAGE = "Invalid group link."


def sort_newest_first(listings: List[GroupListing]) -> List[GroupListing]:
    return sorted(listings, key=lambda listing: listing.created_at, reverse=True)


def matches_query(listing: GroupListing, needle: str) -> bool:
    """``needle`` must already be case-folded."""
    return needle in listing.group_name.casefold() or needle in listing.username.casefold()


class ListingService:
    """
    Create and search group listings.

    The link prefix rule is configurable (GROUP_LINK_PREFIX /
    GROUP_LINK_PREFIX_REQUIRED) rather than hard-wired.
    """

    def __init__(
        self,
        store: JsonRecordStore,
        upload_handler: UploadHandler,
        app_settings: Settings,
    ):
        self.store = store
        self.upload_handler = upload_handler
        self.link_prefix = app_settings.GROUP_LINK_PREFIX
        self.link_prefix_required = app_settings.GROUP_LINK_PREFIX_REQUIRED

    def search(self, query: Optional[str] = None) -> List[GroupListing]:
        """
        Return listings whose group name or username contains ``query``.

        Matching is case-insensitive; an empty query returns everything.
        Results are always sorted by ``created_at`` descending.
        """
        listings = self.store.all()
        needle = (query or "").strip().casefold()
        if needle:
            listings = [listing for listing in listings if matches_query(listing, needle)]

        logger.debug("listings_searched", query=needle or None, results=len(listings))
        return sort_newest_first(listings)

    def validate_submission(self, username: str, group_name: str, group_link: str) -> None:
        if not (username and group_name and group_link):
            metrics.listing_validation_failures_total.labels(reason="missing_fields").inc()
            raise ValidationError(FIELDS_REQUIRED_MESSAGE, reason="missing_fields")

        if self.link_prefix_required and not group_link.startswith(self.link_prefix):
            metrics.listing_validation_failures_total.labels(reason="invalid_link").inc()
            raise ValidationError(INVALID_LINK_MESSAGE, reason="invalid_link")

    async def create(
        self,
        username: Optional[str],
        group_name: Optional[str],
        group_link: Optional[str],
        image: Optional[UploadFile] = None,
    ) -> GroupListing:
        """
        Validate a submission, store its image and append the new listing.

        Raises:
            ValidationError: missing field, bad link or rejected image
            StorageFault: image or document could not be written
        """
        username = (username or "").strip()
        group_name = (group_name or "").strip()
        group_link = (group_link or "").strip()

        self.validate_submission(username, group_name, group_link)

        try:
            image_path = await self.upload_handler.save(image)
        except ValidationError as e:
            metrics.listing_validation_failures_total.labels(reason=e.reason).inc()
            raise

        listing = GroupListing(
            id=str(uuid.uuid4()),
            username=username,
            group_name=group_name,
            group_link=group_link,
            image_path=image_path,
            created_at=time.time_ns() // 1_000_000,
        )

        try:
            await run_in_threadpool(self.store.append, listing)
        except StorageFault:
            self.upload_handler.discard(image_path)
            raise

        metrics.listings_created_total.inc()
        logger.info(
            "listing_created",
            listing_id=listing.id,
            username=listing.username,
            group_name=listing.group_name,
            has_image=image_path is not None,
        )
        return listing
