"""Verification of access tokens issued by the auth provider."""

import jwt
import structlog

from saydo.config import get_settings

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"


class AuthService:
    """Validates bearer tokens; issuing them is the auth provider's job."""

    def __init__(self):
        self.settings = get_settings()

    def validate_access_token(self, token: str) -> dict:
        """Decode and verify a signed access token.

        Args:
            token: Encoded JWT from the Authorization header

        Returns:
            Decoded claims

        Raises:
            ValueError: If the token is expired, has a bad signature or
                audience, or lacks a subject
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                audience=self.settings.jwt_audience,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("access_token_expired")
            raise ValueError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug("access_token_invalid", error=str(e))
            raise ValueError("Invalid token")

        return payload
