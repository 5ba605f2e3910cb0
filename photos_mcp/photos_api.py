"""Google Photos Library API client."""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError

from photos_mcp.models import (
    Album,
    MediaItem,
    NotAuthenticatedError,
    PhotoMetadata,
    RemoteAPIError,
    SearchParams,
)
from photos_mcp.utils.auth import OAuthManager
from photos_mcp.utils.filters import build_search_body

logger = logging.getLogger(__name__)

ALBUM_PAGE_SIZE = 50


def transform_media_item(item: Dict[str, Any]) -> MediaItem:
    """Narrow a raw API media item to a MediaItem.

    Missing fields fall back to placeholders instead of raising.
    """
    item_id = item.get("id", "")
    metadata = item.get("mediaMetadata") or {}
    photo = metadata.get("photo")

    return MediaItem(
        id=item_id,
        product_url=item.get("productUrl", ""),
        base_url=item.get("baseUrl", ""),
        mime_type=item.get("mimeType", ""),
        creation_time=metadata.get("creationTime", ""),
        width=metadata.get("width", ""),
        height=metadata.get("height", ""),
        filename=item.get("filename") or f"photo_{item_id}",
        description=item.get("description"),
        photo=PhotoMetadata(
            camera_make=photo.get("cameraMake"),
            camera_model=photo.get("cameraModel"),
            focal_length=photo.get("focalLength"),
            aperture_f_number=photo.get("apertureFNumber"),
            iso_equivalent=photo.get("isoEquivalent"),
        ) if photo is not None else None,
    )


def transform_album(album: Dict[str, Any]) -> Album:
    """Narrow a raw API album to an Album."""
    return Album(
        id=album.get("id", ""),
        title=album.get("title", "Untitled Album"),
        product_url=album.get("productUrl", ""),
        media_items_count=album.get("mediaItemsCount", "0"),
        cover_photo_base_url=album.get("coverPhotoBaseUrl"),
        cover_photo_media_item_id=album.get("coverPhotoMediaItemId"),
    )


def downloadable_url(base_url: str, width: Optional[int] = None,
                     height: Optional[int] = None) -> str:
    """Append size parameters to a media item base URL."""
    if width and height:
        return f"{base_url}=w{width}-h{height}"
    if width:
        return f"{base_url}=w{width}"
    if height:
        return f"{base_url}=h{height}"
    # Reasonable size for web display
    return f"{base_url}=w1024-h768"


class PhotosClient:
    """Issues Photos Library requests on behalf of the authenticated user."""

    def __init__(self, oauth: OAuthManager,
                 service_builder: Callable[..., Resource] = build):
        """Initialize the client.

        Args:
            oauth: Source of valid access tokens
            service_builder: Builds the discovery service for a credential
        """
        self.oauth = oauth
        self.service_builder = service_builder
        self._service: Optional[Resource] = None
        self._service_token: Optional[str] = None

    def service(self) -> Resource:
        """Return a service bound to a currently valid access token.

        Raises:
            NotAuthenticatedError: If no valid access token is available
        """
        access_token = self.oauth.get_valid_access_token()
        if not access_token:
            logger.error("No valid access token available")
            raise NotAuthenticatedError("Not authenticated with Google Photos")

        if self._service is None or self._service_token != access_token:
            logger.debug("Building photoslibrary service for token %s...", access_token[:8])
            self._service = self.service_builder(
                "photoslibrary",
                "v1",
                credentials=Credentials(token=access_token),
                static_discovery=False,
                cache_discovery=False,
            )
            self._service_token = access_token
        return self._service

    def _execute(self, request: Any) -> Dict[str, Any]:
        try:
            return request.execute() or {}
        except HttpError as e:
            body = e.content.decode("utf-8", "replace") if isinstance(e.content, bytes) else str(e.content)
            logger.error("Google Photos API error %s: %s", e.resp.status, body)
            raise RemoteAPIError(int(e.resp.status), body, "Google Photos API error") from e

    def search_photos(self, params: SearchParams) -> Tuple[List[MediaItem], Optional[str]]:
        """Search media items.

        Returns:
            The shaped media items and the next page token, if any
        """
        body = build_search_body(params)
        logger.info("Searching photos with body %s", body)
        response = self._execute(self.service().mediaItems().search(body=body))
        items = [transform_media_item(item) for item in response.get("mediaItems", [])]
        logger.info("Found %d media items", len(items))
        return items, response.get("nextPageToken")

    def get_photos_by_date_range(self, start_date: str,
                                 end_date: str) -> Tuple[List[MediaItem], Optional[str]]:
        return self.search_photos(SearchParams(start_date=start_date, end_date=end_date))

    def get_recent_photos(self, limit: int = 20) -> List[MediaItem]:
        """List the most recent media items in the library."""
        logger.info("Getting %d recent photos", limit)
        response = self._execute(self.service().mediaItems().list(pageSize=limit))
        return [transform_media_item(item) for item in response.get("mediaItems", [])]

    def get_albums(self) -> Tuple[List[Album], Optional[str]]:
        """List the user's albums (first page)."""
        response = self._execute(self.service().albums().list(pageSize=ALBUM_PAGE_SIZE))
        albums = [transform_album(album) for album in response.get("albums", [])]
        return albums, response.get("nextPageToken")

    def get_album_photos(self, album_id: str) -> Tuple[List[MediaItem], Optional[str]]:
        """List the media items of an album (first page)."""
        return self.search_photos(SearchParams(album_id=album_id, page_size=ALBUM_PAGE_SIZE))

    def get_photo_details(self, media_item_id: str) -> Optional[MediaItem]:
        """Fetch a single media item by id."""
        response = self._execute(self.service().mediaItems().get(mediaItemId=media_item_id))
        if not response:
            return None
        return transform_media_item(response)
