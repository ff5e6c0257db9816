from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .credential_store import CredentialStore
from .events import Listener, SessionEvents
from .models import ApiResponse, Session

logger = logging.getLogger(__name__)

AUTH_REFRESH = "/auth/refresh"

Attempt = Callable[[Optional[str]], Awaitable[httpx.Response]]


class RefreshState(str, enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class ApiClient:
    """Backend client: bearer auth, single-flight token refresh, one retry on 401.

    Every call returns an ``ApiResponse``; transport errors, bad payloads and
    auth failures are folded into it. Session loss is reported through
    ``events`` rather than a return value.
    """

    def __init__(
        self,
        base_url: str,
        store: CredentialStore,
        *,
        timeout_sec: float = 8.0,
        events: Optional[SessionEvents] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.store = store
        self.timeout = timeout_sec
        self.events = events if events is not None else SessionEvents()
        self._transport = transport
        self._refresh_task: Optional[asyncio.Task] = None

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    # SESSION

    def on_session_expired(self, listener: Listener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    @property
    def refresh_state(self) -> RefreshState:
        task = self._refresh_task
        if task is not None and not task.done():
            return RefreshState.REFRESHING
        return RefreshState.IDLE

    async def get_token(self) -> Optional[str]:
        return await self.store.get_access_token()

    async def refresh_and_get_token(self) -> Optional[str]:
        return await self.refresh_token()

    async def refresh_token(self) -> Optional[str]:
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._do_refresh())
            self._refresh_task = task
            task.add_done_callback(self._refresh_settled)
        # shield: a cancelled waiter must not cancel the refresh other waiters share
        return await asyncio.shield(task)

    def _refresh_settled(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _do_refresh(self) -> Optional[str]:
        try:
            refresh = await self.store.get_refresh_token()
            if not refresh:
                logger.info("No refresh token stored, session cannot be renewed")
                await self._expire_session()
                return None

            async with self._http() as client:
                r = await client.post(
                    self._url(AUTH_REFRESH),
                    headers={"Content-Type": "application/json"},
                    json={"refreshToken": refresh},
                )

            if r.is_success:
                payload = r.json()
                session = ((payload or {}).get("data") or {}).get("session") or {}
                access = session.get("access_token")
                new_refresh = session.get("refresh_token")
                if access and new_refresh:
                    await self.store.save_session(Session(access_token=access, refresh_token=new_refresh))
                    return access
                logger.warning("Refresh response has no session tokens")
                return None

            if r.status_code in (400, 401):
                logger.info("Refresh rejected with %s, session expired", r.status_code)
                await self._expire_session()
                return None

            logger.warning("Refresh failed with status %s", r.status_code)
            return None
        except Exception:
            logger.exception("Token refresh failed")
            await self._expire_session()
            return None

    async def _expire_session(self) -> None:
        try:
            await self.store.clear_session()
        except Exception:
            logger.exception("Could not clear stored tokens")
        self.events.emit()

    # REQUESTS

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        skip_auth: bool = False,
        params: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        method = method.upper()

        async def attempt(token: Optional[str]) -> httpx.Response:
            h = {"Content-Type": "application/json", **(headers or {})}
            if token:
                h["Authorization"] = f"Bearer {token}"
            async with self._http() as client:
                return await client.request(
                    method,
                    self._url(endpoint),
                    headers=h,
                    params=params,
                    json=body if body is not None and method != "GET" else None,
                )

        return await self._execute(endpoint, attempt, skip_auth=skip_auth)

    async def get(self, endpoint: str, **kw) -> ApiResponse:
        return await self.request(endpoint, "GET", **kw)

    async def post(self, endpoint: str, body: Any = None, **kw) -> ApiResponse:
        return await self.request(endpoint, "POST", body, **kw)

    async def put(self, endpoint: str, body: Any = None, **kw) -> ApiResponse:
        return await self.request(endpoint, "PUT", body, **kw)

    async def patch(self, endpoint: str, body: Any = None, **kw) -> ApiResponse:
        return await self.request(endpoint, "PATCH", body, **kw)

    async def delete(self, endpoint: str, body: Any = None, **kw) -> ApiResponse:
        return await self.request(endpoint, "DELETE", body, **kw)

    async def upload_form_data(
        self,
        endpoint: str,
        files: Any = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        """Multipart POST; httpx sets the boundary content type.

        File parts should carry bytes, not open file objects, so the body can
        be sent again after a token refresh.
        """

        async def attempt(token: Optional[str]) -> httpx.Response:
            async with self._http() as client:
                return await client.post(
                    self._url(endpoint),
                    headers={"Authorization": f"Bearer {token}"},
                    files=files,
                    data=data,
                )

        return await self._execute(endpoint, attempt, failure_label="Upload failed")

    async def _execute(
        self,
        endpoint: str,
        attempt: Attempt,
        skip_auth: bool = False,
        failure_label: str = "Request failed",
    ) -> ApiResponse:
        try:
            token: Optional[str] = None
            if not skip_auth:
                token = await self.store.get_access_token()
                if not token:
                    return ApiResponse.not_authenticated()

            r = await attempt(token)

            if r.status_code == 401 and not skip_auth:
                sent = token
                current = await self.store.get_access_token()
                if current == sent:
                    token = await self.refresh_token()
                elif current:
                    # another call already renewed the session while this one was in flight
                    token = current
                else:
                    token = None
                if not token:
                    return ApiResponse.session_expired()
                r = await attempt(token)

            return self._classify(r, endpoint, authenticated=not skip_auth, failure_label=failure_label)
        except httpx.HTTPError as e:
            logger.warning("%s %s: %s", type(e).__name__, endpoint, e)
            return ApiResponse.fail(str(e) or "Network error")
        except Exception as e:
            logger.exception("Request to %s failed", endpoint)
            return ApiResponse.fail(str(e) or "Network error")

    def _classify(
        self,
        r: httpx.Response,
        endpoint: str,
        authenticated: bool,
        failure_label: str,
    ) -> ApiResponse:
        status = r.status_code
        content_type = r.headers.get("content-type") or ""

        if "application/json" not in content_type:
            logger.error("Non-JSON response %s (%s): %s", status, content_type or "no content-type", r.text[:200])
            if status in (401, 403):
                return ApiResponse.fail("Authentication required", needs_login=True)
            if status == 404:
                return ApiResponse.fail(f"Endpoint not found: {endpoint}")
            if status == 500:
                return ApiResponse.fail("Internal server error")
            return ApiResponse.fail(f"Server returned {status} error")

        try:
            payload = r.json()
        except ValueError:
            logger.error("Invalid JSON response %s: %s", status, r.text[:200])
            return ApiResponse.fail(
                f"Invalid JSON response from server (Status: {status})",
                needs_login=status in (401, 403),
            )

        message = payload.get("message") if isinstance(payload, dict) else None

        if not r.is_success:
            # 403 is never refreshed; a 401 here already went through one refresh
            needs_login = status == 403 or (status == 401 and authenticated)
            return ApiResponse.fail(
                message or f"{failure_label} with status {status}",
                needs_login=needs_login,
                data=payload,
            )

        data = payload
        if isinstance(payload, dict) and payload.get("data") is not None:
            data = payload["data"]
        return ApiResponse.ok(data, message)
