"""Google ID token verification via the tokeninfo endpoint."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from config import GOOGLE_CLIENT_ID, GOOGLE_TIMEOUT_SECONDS, GOOGLE_TOKENINFO_URL
from core.exceptions import UnauthorizedError, UpstreamFailureError

logger = logging.getLogger(__name__)


@dataclass
class GoogleIdentity:
    google_id: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class GoogleTokenVerifier:
    """Checks Google ID tokens and extracts the signed-in identity."""

    def __init__(
        self,
        client_id: Optional[str] = GOOGLE_CLIENT_ID,
        timeout: float = GOOGLE_TIMEOUT_SECONDS,
    ):
        self.client_id = client_id
        self.timeout = timeout

    def verify(self, credential: str) -> GoogleIdentity:
        """Verify an ID token with Google.

        Args:
            credential: The ID token returned by Google Sign-In.

        Returns:
            GoogleIdentity for the token subject.

        Raises:
            UnauthorizedError: If Google rejects the token, the audience does
                not match, or the email is not verified.
            UpstreamFailureError: If Google cannot be reached.
        """
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(GOOGLE_TOKENINFO_URL, params={"id_token": credential})
        except httpx.HTTPError as e:
            logger.error("Google token verification request failed: %s", e)
            raise UpstreamFailureError("Google token verification failed") from e

        if response.status_code != 200:
            raise UnauthorizedError("Invalid Google token")

        info = response.json()
        if self.client_id and info.get("aud") != self.client_id:
            raise UnauthorizedError("Invalid token audience")
        if str(info.get("email_verified", "false")).lower() != "true":
            raise UnauthorizedError("Google email is not verified")
        if not info.get("sub") or not info.get("email"):
            raise UnauthorizedError("Invalid Google token")

        return GoogleIdentity(
            google_id=info["sub"],
            email=info["email"],
            name=info.get("name"),
            picture=info.get("picture"),
        )
