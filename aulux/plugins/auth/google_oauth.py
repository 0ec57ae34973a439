"""
Google OAuth web flow: consent URL, code exchange and ID-token verification.
"""
import logging
import os
from collections import namedtuple
from typing import Any, Dict, Optional, Tuple

from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2 import id_token
from google_auth_oauthlib.flow import Flow

from aulux.core.config import DEFAULT_SCOPES
from aulux.core.errors import AuluxError

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

GoogleIdentity = namedtuple(
    "GoogleIdentity",
    ["email", "name", "access_token", "refresh_token", "expires_at"],
)


class GoogleOAuth:
    """Builds flows from the auth config section."""

    def __init__(self, auth_config: Dict[str, Any]):
        self.auth_config = auth_config
        self.logger = logging.getLogger(self.__class__.__name__)
        if auth_config.get("allow_insecure_transport"):
            # oauthlib refuses http:// redirect URIs otherwise (local development only)
            os.environ["OAUTHLIB_INSECURE_TRANSPORT"] = "1"
        # Google may return previously granted scopes along with the requested ones
        os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

    def _client_config(self) -> Dict[str, Any]:
        client_id = self.auth_config.get("client_id")
        client_secret = self.auth_config.get("client_secret")
        if not client_id or not client_secret:
            raise AuluxError("Google OAuth client is not configured")
        return {
            "web": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.auth_config.get("redirect_uri")],
            }
        }

    def _flow(self, state: Optional[str] = None) -> Flow:
        return Flow.from_client_config(
            self._client_config(),
            scopes=self.auth_config.get("scopes") or list(DEFAULT_SCOPES),
            state=state,
            redirect_uri=self.auth_config.get("redirect_uri"),
        )

    def authorization_url(self) -> Tuple[str, str]:
        """(consent URL, state). Offline access and forced consent so a refresh token is issued."""
        return self._flow().authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
        )

    def exchange(self, state: str, authorization_response: str) -> GoogleIdentity:
        """Trade the callback URL for tokens and the verified identity."""
        flow = self._flow(state=state)
        flow.fetch_token(authorization_response=authorization_response)
        credentials = flow.credentials
        info = id_token.verify_oauth2_token(
            credentials.id_token,
            GoogleRequest(),
            self.auth_config.get("client_id"),
        )
        email = info.get("email")
        if not email or not info.get("email_verified", True):
            raise AuluxError("Google account has no verified email")
        self.logger.info(f"Google sign-in completed for {email}")
        return GoogleIdentity(
            email=email,
            name=info.get("name"),
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expires_at=credentials.expiry,
        )
