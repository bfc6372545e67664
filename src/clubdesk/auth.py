"""
Auth module — email/password sign-in against the backend's token endpoint.
"""

from typing import Any

from clubdesk.errors import AuthError, ClubDeskError
from clubdesk.transport.http import HttpClient


class Auth:
    def __init__(self, http: HttpClient):
        self._http = http

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Exchange credentials for an access token and start using it."""
        try:
            result = await self._http.request(
                "POST", "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                authenticated=False,
            )
        except ClubDeskError as e:
            raise AuthError(f"Sign-in failed: {e.message}") from e
        if not isinstance(result, dict) or "access_token" not in result:
            raise AuthError("Sign-in failed: no access token in response")
        self._http.set_token(result["access_token"])
        return result

    @staticmethod
    def user_id(session: dict[str, Any]) -> str:
        return (session.get("user") or {}).get("id", "")

    def sign_out(self) -> None:
        self._http.set_token(None)
