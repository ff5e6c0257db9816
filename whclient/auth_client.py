from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .api_client import ApiClient
from .models import ApiResponse, Session, UserData

logger = logging.getLogger(__name__)

AUTH_SIGNUP = "/auth/signup"
AUTH_SIGNIN = "/auth/signin"
AUTH_SIGNOUT = "/auth/signout"
AUTH_USER = "/auth/user"


class AuthClient:
    def __init__(self, api: ApiClient):
        self.api = api
        self.store = api.store

    async def sign_in(self, email: str, password: str) -> ApiResponse:
        email = (email or "").strip()
        if not email or not password:
            return ApiResponse.fail("Email and password are required")
        res = await self.api.post(AUTH_SIGNIN, {"email": email, "password": password}, skip_auth=True)
        if res.success:
            await self._remember(res.data, fallback_email=email)
        return res

    async def sign_up(self, email: str, password: str, name: str) -> ApiResponse:
        email = (email or "").strip()
        if not email or not password:
            return ApiResponse.fail("Email and password are required")
        res = await self.api.post(
            AUTH_SIGNUP,
            {"email": email, "password": password, "name": name},
            skip_auth=True,
        )
        if res.success:
            await self._remember(res.data, fallback_email=email, fallback_name=name)
        return res

    async def sign_out(self) -> ApiResponse:
        # the server call is best effort, local credentials go either way
        res = ApiResponse.ok(message="Signed out")
        if await self.store.get_access_token():
            res = await self.api.post(AUTH_SIGNOUT, {})
            if not res.success:
                logger.info("Server sign-out failed: %s", res.message)
        await self.store.clear_user_data()
        return res

    async def get_user(self) -> ApiResponse:
        return await self.api.get(AUTH_USER)

    async def is_signed_in(self) -> bool:
        return bool(await self.store.get_access_token())

    async def _remember(
        self,
        data: Any,
        fallback_email: str,
        fallback_name: Optional[str] = None,
    ) -> None:
        data = data if isinstance(data, dict) else {}
        session: Dict[str, Any] = data.get("session") or {}
        if session.get("access_token") and session.get("refresh_token"):
            await self.store.save_session(
                Session(access_token=session["access_token"], refresh_token=session["refresh_token"])
            )
        else:
            logger.info("Auth response carried no session, tokens left unchanged")

        user: Dict[str, Any] = data.get("user") or {}
        email = user.get("email") or fallback_email
        name = user.get("name") or fallback_name or email.split("@")[0]
        await self.store.save_user_data(
            UserData(user_name=name, email=email, user_id=str(user["id"]) if user.get("id") else None)
        )
