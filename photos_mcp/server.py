"""MCP tool server exposing Google Photos operations over stdio."""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

import anyio
import anyio.to_thread
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from photos_mcp import __version__
from photos_mcp.models import MediaItem, PhotosMCPError, SearchParams
from photos_mcp.photos_api import PhotosClient, downloadable_url
from photos_mcp.utils.auth import OAuthManager

logger = logging.getLogger(__name__)

SERVER_NAME = "google-photos-mcp-server"

_NO_ARGS = {"type": "object", "properties": {}}

TOOLS: List[Dict[str, Any]] = [
    {
        "name": "get_auth_url",
        "description": "Get OAuth authorization URL for Google Photos access",
        "inputSchema": _NO_ARGS,
    },
    {
        "name": "exchange_auth_code",
        "description": "Exchange authorization code for access tokens",
        "inputSchema": {
            "type": "object",
            "properties": {
                "code": {"type": "string", "description": "Authorization code from OAuth callback"},
            },
            "required": ["code"],
        },
    },
    {
        "name": "get_auth_status",
        "description": "Check current authentication status",
        "inputSchema": _NO_ARGS,
    },
    {
        "name": "revoke_auth",
        "description": "Revoke authentication and clear tokens",
        "inputSchema": _NO_ARGS,
    },
    {
        "name": "search_photos",
        "description": "Search photos by query, date range, or content categories",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query (e.g., 'vacation', 'people', 'food')"},
                "startDate": {"type": "string", "description": "Start date in YYYY-MM-DD format"},
                "endDate": {"type": "string", "description": "End date in YYYY-MM-DD format"},
                "pageSize": {"type": "number", "description": "Number of photos to return (max 100)", "maximum": 100},
                "pageToken": {"type": "string", "description": "Token of the page to fetch"},
            },
        },
    },
    {
        "name": "get_recent_photos",
        "description": "Get recent photos from Google Photos",
        "inputSchema": {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "number",
                    "description": "Number of recent photos to retrieve (default 20, max 100)",
                    "maximum": 100,
                },
            },
        },
    },
    {
        "name": "get_albums",
        "description": "Get list of photo albums",
        "inputSchema": _NO_ARGS,
    },
    {
        "name": "get_album_photos",
        "description": "Get photos from a specific album",
        "inputSchema": {
            "type": "object",
            "properties": {
                "albumId": {"type": "string", "description": "Album ID to retrieve photos from"},
            },
            "required": ["albumId"],
        },
    },
    {
        "name": "get_photo_details",
        "description": "Get detailed information about a specific photo",
        "inputSchema": {
            "type": "object",
            "properties": {
                "photoId": {"type": "string", "description": "Photo ID to get details for"},
            },
            "required": ["photoId"],
        },
    },
    {
        "name": "get_trip_photos",
        "description": "Get photos from a specific trip or location",
        "inputSchema": {
            "type": "object",
            "properties": {
                "location": {"type": "string", "description": "Location or trip destination"},
                "startDate": {"type": "string", "description": "Trip start date in YYYY-MM-DD format"},
                "endDate": {"type": "string", "description": "Trip end date in YYYY-MM-DD format"},
            },
            "required": ["location"],
        },
    },
]


def photo_with_urls(photo: MediaItem, **extra: Any) -> Dict[str, Any]:
    """Serialize a media item with display and thumbnail URLs."""
    data = photo.to_dict()
    data["downloadUrl"] = downloadable_url(photo.base_url, 1024, 768)
    data["thumbnailUrl"] = downloadable_url(photo.base_url, 300, 200)
    data.update(extra)
    return data


def _required(arguments: Dict[str, Any], key: str) -> Any:
    value = arguments.get(key)
    if not value:
        raise PhotosMCPError(f"Missing required argument: {key}")
    return value


class PhotosToolServer:
    """Dispatches named tool calls to the OAuth manager and Photos client."""

    def __init__(self, oauth: OAuthManager, photos: PhotosClient):
        self.oauth = oauth
        self.photos = photos
        self.handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "get_auth_url": self.get_auth_url,
            "exchange_auth_code": self.exchange_auth_code,
            "get_auth_status": self.get_auth_status,
            "revoke_auth": self.revoke_auth,
            "search_photos": self.search_photos,
            "get_recent_photos": self.get_recent_photos,
            "get_albums": self.get_albums,
            "get_album_photos": self.get_album_photos,
            "get_photo_details": self.get_photo_details,
            "get_trip_photos": self.get_trip_photos,
        }

    def list_tools(self) -> List[Tool]:
        """Describe every tool this server answers."""
        return [Tool(**tool) for tool in TOOLS]

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a tool and return its payload.

        Failures are reported as ``{"success": False, "error": ...}``.
        """
        handler = self.handlers.get(name)
        if handler is None:
            return {"success": False, "error": f"Unknown tool: {name}"}

        logger.info("Calling tool %s", name)
        try:
            return handler(arguments or {})
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return {"success": False, "error": str(e)}

    def get_auth_url(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "authUrl": self.oauth.generate_auth_url(),
            "message": "Visit this URL to authorize Google Photos access",
        }

    def exchange_auth_code(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.oauth.exchange_code(_required(arguments, "code"))
        status = self.oauth.get_authentication_status()
        logger.info("User authenticated: %s", status.user_email or "Unknown")
        return {
            "success": True,
            "message": "Successfully authenticated with Google Photos",
            "userEmail": status.user_email,
            "expiresAt": self.oauth.tokens.expiry_date if self.oauth.tokens else None,
        }

    def get_auth_status(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        return self.oauth.get_authentication_status().to_dict()

    def revoke_auth(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.oauth.revoke_tokens()
        return {"success": True, "message": "Authentication revoked successfully"}

    def search_photos(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        items, next_page_token = self.photos.search_photos(
            SearchParams(
                query=arguments.get("query"),
                start_date=arguments.get("startDate"),
                end_date=arguments.get("endDate"),
                page_size=int(arguments.get("pageSize") or 20),
                page_token=arguments.get("pageToken"),
            )
        )
        photos = [photo_with_urls(item) for item in items]
        return {"photos": photos, "count": len(photos), "nextPageToken": next_page_token}

    def get_recent_photos(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        limit = min(int(arguments.get("limit") or 20), 100)
        photos = [photo_with_urls(item) for item in self.photos.get_recent_photos(limit)]
        return {"photos": photos, "count": len(photos)}

    def get_albums(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        albums, _ = self.photos.get_albums()
        return {"albums": [album.to_dict() for album in albums], "count": len(albums)}

    def get_album_photos(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        album_id = _required(arguments, "albumId")
        items, _ = self.photos.get_album_photos(album_id)
        photos = [photo_with_urls(item) for item in items]
        return {"photos": photos, "count": len(photos), "albumId": album_id}

    def get_photo_details(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        photo_id = _required(arguments, "photoId")
        photo = self.photos.get_photo_details(photo_id)
        if photo is None:
            raise PhotosMCPError(f"Photo with ID {photo_id} not found")
        return photo_with_urls(photo)

    def get_trip_photos(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        location = _required(arguments, "location")
        items, _ = self.photos.search_photos(
            SearchParams(
                query=location,
                start_date=arguments.get("startDate"),
                end_date=arguments.get("endDate"),
                page_size=50,
            )
        )
        photos = [photo_with_urls(item, tripLocation=location) for item in items]
        return {
            "photos": photos,
            "count": len(photos),
            "location": location,
            "dateRange": {
                "startDate": arguments.get("startDate"),
                "endDate": arguments.get("endDate"),
            },
        }


def create_server(tools: PhotosToolServer) -> Server:
    """Wire a tool dispatcher into an MCP server."""
    server = Server(SERVER_NAME, version=__version__)
    # Token refreshes and file writes must not interleave.
    lock = anyio.Lock()

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        return tools.list_tools()

    # Arguments are checked by the handlers so errors keep the payload shape.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        async with lock:
            payload = await anyio.to_thread.run_sync(tools.call_tool, name, arguments)
        return [TextContent(type="text", text=json.dumps(payload, indent=2))]

    return server


async def run_stdio(credentials_path: str, token_path: str) -> None:
    """Load stored tokens and serve tools over stdio until stdin closes."""
    oauth = OAuthManager(credentials_path, token_path)
    oauth.load_tokens()
    server = create_server(PhotosToolServer(oauth, PhotosClient(oauth)))

    async with stdio_server() as (read_stream, write_stream):
        logger.info("Google Photos MCP server running on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
