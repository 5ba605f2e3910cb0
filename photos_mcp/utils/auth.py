"""OAuth token lifecycle for the Google Photos Library API."""

import json
import logging
import os
import time
from datetime import timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from photos_mcp.models import (
    AuthenticationStatus,
    AuthExchangeError,
    ClientCredential,
    CredentialLoadError,
    PhotosMCPError,
    RefreshError,
    RemoteAPIError,
    TokenSet,
)

logger = logging.getLogger(__name__)

# If modifying these scopes, revoke and delete the token file.
SCOPES = [
    "https://www.googleapis.com/auth/photoslibrary.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
]

TOKEN_INFO_URI = "https://oauth2.googleapis.com/tokeninfo"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"

# Refresh when the access token expires within this many milliseconds.
REFRESH_MARGIN_MS = 5 * 60 * 1000

# Google may grant a superset of the requested scopes.
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")


def load_client_credentials(credentials_path: str) -> ClientCredential:
    """Load the OAuth client registration from a client secret file.

    Args:
        credentials_path: Path to the client_secret.json file

    Returns:
        The client credential found under ``installed`` or ``web``

    Raises:
        CredentialLoadError: If the file is missing, malformed or incomplete
    """
    try:
        with open(credentials_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise CredentialLoadError(
            f"Failed to load credentials from {credentials_path}: {e}"
        ) from e

    section = data.get("installed") or data.get("web") if isinstance(data, dict) else None
    if not isinstance(section, dict) or not section:
        raise CredentialLoadError(
            f"Failed to load credentials from {credentials_path}: "
            "expected an 'installed' or 'web' client"
        )

    try:
        return ClientCredential(
            client_id=section["client_id"],
            client_secret=section["client_secret"],
            redirect_uris=list(section.get("redirect_uris", [])),
            auth_uri=section.get("auth_uri", ClientCredential.auth_uri),
            token_uri=section.get("token_uri", ClientCredential.token_uri),
        )
    except KeyError as e:
        raise CredentialLoadError(
            f"Failed to load credentials from {credentials_path}: missing {e}"
        ) from e


class OAuthManager:
    """Owns the single user's token set and keeps it fresh.

    The token set is persisted to ``token_path`` on every change so that a
    restarted process resumes where the previous one stopped.
    """

    def __init__(
        self,
        credentials_path: str = "client_secret.json",
        token_path: str = "tokens.json",
        request: Optional[Request] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the manager.

        Args:
            credentials_path: Path to the client secret file, read once
            token_path: Path of the persisted token file
            request: HTTP transport used for token endpoints
            clock: Returns the current time in seconds since the epoch
        """
        self.credential = load_client_credentials(credentials_path)
        self.token_path = token_path
        self.request = request or Request()
        self.clock = clock
        self.tokens: Optional[TokenSet] = None

    def _client_config(self) -> Dict[str, Any]:
        return {
            "installed": {
                "client_id": self.credential.client_id,
                "client_secret": self.credential.client_secret,
                "redirect_uris": self.credential.redirect_uris,
                "auth_uri": self.credential.auth_uri,
                "token_uri": self.credential.token_uri,
            }
        }

    def _flow(self) -> Flow:
        # No PKCE: the URL and the exchange may be served by different flows.
        return Flow.from_client_config(
            self._client_config(),
            scopes=SCOPES,
            redirect_uri=self.credential.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def load_tokens(self) -> bool:
        """Load the persisted token set, if any.

        Returns:
            True if a token set was loaded, False to start unauthenticated
        """
        try:
            with open(self.token_path, "r", encoding="utf-8") as f:
                self.tokens = TokenSet.from_dict(json.load(f))
        except FileNotFoundError:
            logger.info("No existing tokens found at %s", self.token_path)
            return False
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to load tokens from %s: %s", self.token_path, e)
            return False
        return True

    def save_tokens(self, tokens: TokenSet) -> None:
        """Persist the token set wholesale, then make it current."""
        try:
            with open(self.token_path, "w", encoding="utf-8") as f:
                f.write(json.dumps(tokens.to_dict(), indent=2))
        except OSError as e:
            raise PhotosMCPError(f"Failed to save tokens: {e}") from e
        self.tokens = tokens

    def generate_auth_url(self) -> str:
        """Build the consent URL requesting offline access."""
        url, _ = self._flow().authorization_url(access_type="offline", prompt="consent")
        return url

    def exchange_code(self, code: str) -> TokenSet:
        """Exchange a one-time authorization code for a token set.

        Raises:
            AuthExchangeError: If the authorization server rejects the code
        """
        if not code:
            raise AuthExchangeError("Authorization code is required")

        try:
            token = self._flow().fetch_token(code=code)
        except Exception as e:
            raise AuthExchangeError(f"Failed to exchange code for tokens: {e}") from e
        if not token.get("access_token"):
            raise AuthExchangeError("Token response did not include an access token")

        scope = token.get("scope", "")
        if isinstance(scope, (list, tuple)):
            scope = " ".join(scope)
        expires_at = token.get("expires_at")

        tokens = TokenSet(
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            scope=scope,
            token_type=token.get("token_type", "Bearer"),
            expiry_date=int(expires_at * 1000) if expires_at else None,
        )
        self.save_tokens(tokens)
        logger.info(
            "Exchanged authorization code (refresh token received: %s)",
            "yes" if tokens.refresh_token else "no",
        )
        return tokens

    def needs_refresh(self) -> bool:
        """Return True if the access token expires within the safety margin."""
        if not self.tokens:
            return False
        expiry = self.tokens.expiry_date or 0
        return expiry - self._now_ms() < REFRESH_MARGIN_MS

    def refresh(self) -> TokenSet:
        """Obtain a new access token with the stored refresh token.

        The refresh token is kept when the server does not reissue one.

        Raises:
            RefreshError: If there is nothing to refresh or the server refuses
        """
        if not self.tokens:
            raise RefreshError("No tokens to refresh")
        if not self.tokens.refresh_token:
            raise RefreshError("No refresh token available")

        creds = Credentials(
            token=self.tokens.access_token,
            refresh_token=self.tokens.refresh_token,
            token_uri=self.credential.token_uri,
            client_id=self.credential.client_id,
            client_secret=self.credential.client_secret,
        )
        try:
            creds.refresh(self.request)
        except GoogleAuthError as e:
            raise RefreshError(f"Failed to refresh tokens: {e}") from e

        expiry_date = None
        if creds.expiry is not None:
            expiry_date = int(creds.expiry.replace(tzinfo=timezone.utc).timestamp() * 1000)

        refreshed = TokenSet(
            access_token=creds.token,
            refresh_token=creds.refresh_token or self.tokens.refresh_token,
            scope=self.tokens.scope,
            token_type=self.tokens.token_type,
            expiry_date=expiry_date,
        )
        self.save_tokens(refreshed)
        return refreshed

    def refresh_tokens_if_needed(self) -> bool:
        """Refresh the access token if it is about to expire.

        Returns:
            True if the current access token can be used, False otherwise
        """
        if not self.tokens:
            return False
        if not self.needs_refresh():
            return True

        logger.info("Refreshing access token...")
        try:
            self.refresh()
        except PhotosMCPError as e:
            logger.error("%s", e)
            return False
        return True

    def get_valid_access_token(self) -> Optional[str]:
        """Return an access token valid for at least the safety margin."""
        if not self.refresh_tokens_if_needed():
            return None
        return self.tokens.access_token

    def get_token_info(self, access_token: str) -> Dict[str, Any]:
        """Look up the email and scopes attached to an access token.

        Raises:
            RemoteAPIError: If the token info endpoint rejects the token
        """
        response = self.request(
            url=f"{TOKEN_INFO_URI}?{urlencode({'access_token': access_token})}",
            method="GET",
        )
        body = response.data.decode("utf-8") if isinstance(response.data, bytes) else response.data
        if response.status != 200:
            raise RemoteAPIError(response.status, body, "Token info request failed")
        return json.loads(body)

    def get_authentication_status(self) -> AuthenticationStatus:
        """Compute the authentication status from the current token set."""
        access_token = self.get_valid_access_token()
        if not access_token:
            return AuthenticationStatus(is_authenticated=False)

        try:
            info = self.get_token_info(access_token)
        except (PhotosMCPError, GoogleAuthError, ValueError) as e:
            logger.error("Failed to get authentication status: %s", e)
            return AuthenticationStatus(is_authenticated=False)

        return AuthenticationStatus(
            is_authenticated=True,
            user_email=info.get("email"),
            scopes=info.get("scope", "").split(),
            expires_at=self.tokens.expiry_date,
        )

    def revoke_tokens(self) -> None:
        """Revoke the access token remotely and forget it locally.

        The remote call is best effort: local state is cleared regardless.
        """
        if self.tokens and self.tokens.access_token:
            try:
                response = self.request(
                    url=REVOKE_URI,
                    method="POST",
                    body=urlencode({"token": self.tokens.access_token}),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                if response.status != 200:
                    logger.error("Failed to revoke tokens: HTTP %s", response.status)
            except GoogleAuthError as e:
                logger.error("Failed to revoke tokens: %s", e)

        self.tokens = None
        try:
            os.remove(self.token_path)
        except FileNotFoundError:
            pass
