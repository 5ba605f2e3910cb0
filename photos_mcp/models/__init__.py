"""Models for Google Photos MCP tools."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ClientCredential:
    """OAuth client registration loaded from the static credential file."""
    client_id: str
    client_secret: str
    redirect_uris: List[str]
    auth_uri: str = "https://accounts.google.com/o/oauth2/auth"
    token_uri: str = "https://oauth2.googleapis.com/token"

    @property
    def redirect_uri(self) -> str:
        """First registered redirect URI."""
        return self.redirect_uris[0] if self.redirect_uris else ""


@dataclass
class TokenSet:
    """OAuth2 access/refresh token bundle and its expiry.

    ``expiry_date`` is expressed in milliseconds since the epoch.
    """
    access_token: str
    scope: str = ""
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expiry_date: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the persisted JSON shape, omitting unset optionals."""
        data: Dict[str, Any] = {
            "access_token": self.access_token,
            "scope": self.scope,
            "token_type": self.token_type,
        }
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        if self.expiry_date is not None:
            data["expiry_date"] = self.expiry_date
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSet":
        """Build a token set from its persisted JSON shape.

        Raises:
            KeyError: If the access token is missing
        """
        expiry = data.get("expiry_date")
        return cls(
            access_token=data["access_token"],
            scope=data.get("scope", ""),
            token_type=data.get("token_type", "Bearer"),
            refresh_token=data.get("refresh_token"),
            expiry_date=int(expiry) if expiry is not None else None,
        )


@dataclass
class PhotoMetadata:
    """Camera EXIF fields reported for photos."""
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    focal_length: Optional[float] = None
    aperture_f_number: Optional[float] = None
    iso_equivalent: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cameraMake": self.camera_make,
            "cameraModel": self.camera_model,
            "focalLength": self.focal_length,
            "apertureFNumber": self.aperture_f_number,
            "isoEquivalent": self.iso_equivalent,
        }


@dataclass
class MediaItem:
    """Represents a media item in Google Photos."""
    id: str
    product_url: str
    base_url: str
    mime_type: str
    creation_time: str
    width: str
    height: str
    filename: str
    description: Optional[str] = None
    photo: Optional[PhotoMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase shape used in tool payloads."""
        media_metadata: Dict[str, Any] = {
            "creationTime": self.creation_time,
            "width": self.width,
            "height": self.height,
        }
        if self.photo is not None:
            media_metadata["photo"] = self.photo.to_dict()
        data: Dict[str, Any] = {
            "id": self.id,
            "productUrl": self.product_url,
            "baseUrl": self.base_url,
            "mimeType": self.mime_type,
            "mediaMetadata": media_metadata,
            "filename": self.filename,
        }
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass
class Album:
    """Represents an album in Google Photos."""
    id: str
    title: str
    product_url: str
    media_items_count: str
    cover_photo_base_url: Optional[str] = None
    cover_photo_media_item_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "productUrl": self.product_url,
            "mediaItemsCount": self.media_items_count,
            "coverPhotoBaseUrl": self.cover_photo_base_url,
            "coverPhotoMediaItemId": self.cover_photo_media_item_id,
        }


@dataclass
class SearchParams:
    """Parameters accepted by a media item search."""
    query: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    album_id: Optional[str] = None
    page_size: int = 20
    page_token: Optional[str] = None


@dataclass
class AuthenticationStatus:
    """Authentication state derived from the current token set."""
    is_authenticated: bool
    user_email: Optional[str] = None
    scopes: List[str] = field(default_factory=list)
    expires_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.is_authenticated:
            return {"isAuthenticated": False}
        return {
            "isAuthenticated": True,
            "userEmail": self.user_email,
            "scopes": self.scopes,
            "expiresAt": self.expires_at,
        }


class PhotosMCPError(Exception):
    """Base exception for Google Photos operations."""


class CredentialLoadError(PhotosMCPError):
    """Raised when the static client credential file cannot be loaded."""


class AuthExchangeError(PhotosMCPError):
    """Raised when an authorization code cannot be exchanged for tokens."""


class RefreshError(PhotosMCPError):
    """Raised when an access token cannot be refreshed."""


class NotAuthenticatedError(PhotosMCPError):
    """Raised when no valid access token is available."""


class RemoteAPIError(PhotosMCPError):
    """Raised when the Photos Library API answers with a non-2xx status."""

    def __init__(self, status: int, body: str, message: str = "API request failed"):
        self.status = status
        self.body = body
        super().__init__(f"{message}: {status} - {body}")
