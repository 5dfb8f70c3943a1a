"""
Identity provider integration.

Sessions, passwords and email flows live entirely with the provider; this
service only verifies the bearer tokens it issues and calls its admin API.
"""

import logging
from typing import Any, Optional

import httpx
from jose import JWTError, jwt

from app.core.config import settings
from app.schemas.auth import TokenData

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """The identity provider rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthService:
    """Service for handling authentication operations"""

    @staticmethod
    def verify_token(token: str) -> TokenData | None:
        """Verify and decode a provider-issued JWT"""
        # Handle edge cases
        if not token or not isinstance(token, str) or token in ("undefined", "null"):
            return None

        try:
            payload = jwt.decode(
                token,
                settings.SUPABASE_JWT_SECRET,
                algorithms=[settings.JWT_ALGORITHM],
                audience=settings.JWT_AUDIENCE,
            )
        except JWTError:
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None
        try:
            return TokenData(user_id=user_id, email=payload.get("email"), role=payload.get("role"))
        except ValueError:
            # sub is not a UUID
            return None


class IdentityProviderClient:
    """Thin client for the provider's admin API (service-role key)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.service_role_key = service_role_key or settings.SUPABASE_SERVICE_ROLE_KEY
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
        }

    def create_user(
        self, email: str, password: str, first_name: str, last_name: str
    ) -> dict[str, Any]:
        """Create a confirmed user and return the provider's user record."""
        body = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": {"first_name": first_name, "last_name": last_name},
        }
        try:
            with httpx.Client(
                transport=self._transport, timeout=settings.IDENTITY_PROVIDER_TIMEOUT
            ) as client:
                response = client.post(
                    f"{self.base_url}/auth/v1/admin/users", json=body, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            logger.error("Identity provider unreachable: %s", exc)
            raise IdentityProviderError("Identity provider unreachable") from exc

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = payload.get("msg") or payload.get("message") or payload.get("error") or response.text
            logger.warning("Identity provider rejected user creation (%s): %s", response.status_code, message)
            raise IdentityProviderError(message or "User creation failed", response.status_code)

        user = response.json()
        if not user.get("id"):
            raise IdentityProviderError("Identity provider returned no user id")
        return user
