"""Main module for Google Photos MCP tools."""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv
from tabulate import tabulate

from photos_mcp import bridge, server, ui_server
from photos_mcp.models import CredentialLoadError, MediaItem, PhotosMCPError, SearchParams
from photos_mcp.photos_api import PhotosClient
from photos_mcp.utils.auth import OAuthManager

logger = logging.getLogger(__name__)


class GooglePhotosTools:
    """Runs Google Photos operations from the command line."""

    def __init__(self, credentials_path: str = "client_secret.json",
                 token_path: str = "tokens.json"):
        """Initialize the tools and load any stored tokens."""
        self.oauth = OAuthManager(credentials_path, token_path)
        self.oauth.load_tokens()
        self.photos = PhotosClient(self.oauth)

    def print_auth_url(self) -> None:
        """Print the consent URL to visit."""
        print("Visit this URL to authorize Google Photos access:")
        print(self.oauth.generate_auth_url())

    def exchange_code(self, code: str) -> None:
        """Exchange an authorization code and report the result."""
        tokens = self.oauth.exchange_code(code)
        print("Successfully authenticated with Google Photos")
        if tokens.expiry_date:
            print(f"Access token expires at {format_expiry(tokens.expiry_date)}")

    def print_status(self) -> bool:
        """Print the authentication status."""
        status = self.oauth.get_authentication_status()
        if not status.is_authenticated:
            print("Not authenticated with Google Photos")
            return False

        print(
            tabulate(
                [
                    ["User", status.user_email or "Unknown"],
                    ["Scopes", "\n".join(status.scopes)],
                    ["Expires", format_expiry(status.expires_at)],
                ],
                tablefmt="psql",
            )
        )
        return True

    def revoke(self) -> None:
        """Revoke authentication and delete stored tokens."""
        self.oauth.revoke_tokens()
        print("Authentication revoked successfully")

    def print_photos(self, photos: List[MediaItem]) -> None:
        """Print media items as a table."""
        if not photos:
            print("No photos found")
            return

        rows = [
            [
                photo.filename,
                photo.creation_time,
                photo.mime_type,
                f"{photo.width}x{photo.height}",
                photo.id,
            ]
            for photo in photos
        ]
        print(
            tabulate(
                rows,
                headers=["Filename", "Creation Time", "MIME Type", "Dimensions", "ID"],
                tablefmt="psql",
            )
        )
        print(f"\nTotal photos found: {len(rows)}")

    def search_photos(self, params: SearchParams) -> None:
        """Search photos and print the first page of results."""
        photos, next_page_token = self.photos.search_photos(params)
        self.print_photos(photos)
        if next_page_token:
            print(f"Next page token: {next_page_token}")

    def print_recent_photos(self, limit: int = 20) -> None:
        self.print_photos(self.photos.get_recent_photos(limit))

    def print_albums(self) -> None:
        """Print the user's albums."""
        albums, _ = self.photos.get_albums()
        if not albums:
            print("No albums found")
            return

        rows = [[album.title, album.media_items_count, album.id] for album in albums]
        print(tabulate(rows, headers=["Title", "Items", "ID"], tablefmt="psql"))
        print(f"\nTotal albums: {len(rows)}")


def format_expiry(expiry_date: Optional[int]) -> str:
    """Format an epoch-milliseconds expiry as an ISO timestamp."""
    if not expiry_date:
        return "Unknown"
    return datetime.fromtimestamp(expiry_date / 1000, tz=timezone.utc).isoformat()


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Google Photos MCP Tools")

    # Global arguments
    parser.add_argument(
        "--credentials",
        type=str,
        default=os.environ.get("PHOTOS_MCP_CREDENTIALS", "client_secret.json"),
        help="OAuth client secret file",
    )
    parser.add_argument(
        "--tokens",
        type=str,
        default=os.environ.get("PHOTOS_MCP_TOKENS", "tokens.json"),
        help="Token storage file",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    # Add subparsers for different commands
    subparsers = parser.add_subparsers(dest="command", help="Commands", required=True)

    subparsers.add_parser("serve", help="Run the Google Photos MCP server on stdio")

    bridge_parser = subparsers.add_parser("bridge", help="Run the HTTP bridge")
    bridge_parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
    bridge_parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PHOTOS_MCP_BRIDGE_PORT", "3001")),
        help="Listen port",
    )

    ui_parser = subparsers.add_parser("ui-server", help="Run the UI generation MCP server on stdio")
    ui_parser.add_argument(
        "--model",
        type=str,
        default=os.environ.get("PHOTOS_MCP_UI_MODEL", ui_server.DEFAULT_MODEL),
        help="Gemini model name",
    )

    subparsers.add_parser("auth-url", help="Print the authorization URL")

    exchange_parser = subparsers.add_parser("exchange-code", help="Exchange an authorization code")
    exchange_parser.add_argument("code", type=str, help="Authorization code from the OAuth callback")

    subparsers.add_parser("status", help="Show authentication status")
    subparsers.add_parser("revoke", help="Revoke authentication and delete tokens")

    search_parser = subparsers.add_parser("search", help="Search photos")
    search_parser.add_argument("--query", type=str, help="Free text, e.g. 'vacation' or 'food'")
    search_parser.add_argument("--start-date", type=str, help="Start date (YYYY-MM-DD)")
    search_parser.add_argument("--end-date", type=str, help="End date (YYYY-MM-DD)")
    search_parser.add_argument("--page-size", type=int, default=20, help="Photos per page (max 100)")
    search_parser.add_argument("--page-token", type=str, help="Token of the page to fetch")

    recent_parser = subparsers.add_parser("recent", help="List recent photos")
    recent_parser.add_argument("--limit", type=int, default=20, help="Number of photos")

    subparsers.add_parser("albums", help="List albums")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Google Photos MCP CLI."""
    load_dotenv()
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.command == "serve":
            asyncio.run(server.run_stdio(args.credentials, args.tokens))
            return 0

        if args.command == "bridge":
            bridge.run_bridge(args.credentials, args.tokens, host=args.host, port=args.port)
            return 0

        if args.command == "ui-server":
            asyncio.run(ui_server.run_stdio(model=args.model))
            return 0

        tools = GooglePhotosTools(args.credentials, args.tokens)

        if args.command == "auth-url":
            tools.print_auth_url()
        elif args.command == "exchange-code":
            tools.exchange_code(args.code)
        elif args.command == "status":
            return 0 if tools.print_status() else 1
        elif args.command == "revoke":
            tools.revoke()
        elif args.command == "search":
            tools.search_photos(
                SearchParams(
                    query=args.query,
                    start_date=args.start_date,
                    end_date=args.end_date,
                    page_size=args.page_size,
                    page_token=args.page_token,
                )
            )
        elif args.command == "recent":
            tools.print_recent_photos(args.limit)
        elif args.command == "albums":
            tools.print_albums()

    except CredentialLoadError as e:
        logger.error("%s", e)
        return 2
    except (PhotosMCPError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
