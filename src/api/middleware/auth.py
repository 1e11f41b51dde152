"""ACP bearer token authentication."""

import hmac
import logging
from enum import Enum

from src.core.config import get_settings

logger = logging.getLogger(__name__)


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    MISSING_HEADER = "MISSING_HEADER"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_TOKEN = "INVALID_TOKEN"


class AuthError(Exception):
    """Authentication error with specific error code.

    Raised when the Authorization header fails ACP validation.
    """

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        """Initialize authentication error.

        Args:
            message: Human-readable error description.
            code: Specific error code for programmatic handling.
        """
        self.message = message
        self.code = code
        super().__init__(message)


def validate_acp_token(authorization: str | None) -> None:
    """Validate an ACP Authorization header.

    When ACP_AUTH_TOKEN is not configured every request is allowed and a
    warning is logged, so local demos work without credentials.

    Args:
        authorization: Raw Authorization header value.

    Raises:
        AuthError: If the header is missing, malformed, or carries the wrong token.
    """
    if not authorization:
        raise AuthError("Missing Authorization header", AuthErrorCode.MISSING_HEADER)

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError(
            "Invalid Authorization format. Expected: Bearer <token>",
            AuthErrorCode.INVALID_FORMAT,
        )

    expected = get_settings().acp_auth_token
    if not expected:
        logger.warning("ACP_AUTH_TOKEN not configured, allowing request")
        return

    if not hmac.compare_digest(parts[1].encode(), expected.encode()):
        raise AuthError("Invalid authorization token", AuthErrorCode.INVALID_TOKEN)
