from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .api_client import ApiClient
from .models import ApiResponse, Currency, SavedWalletInfo, UserSettings

logger = logging.getLogger(__name__)

SELECTED_WALLET_ID_KEY = "selectedWalletId"
SELECTED_WALLET_INFO_KEY = "selectedWalletInfo"
HAS_PIN_KEY = "has_pin"
BIOMETRIC_ENABLED_KEY = "biometric_enabled"
LANGUAGE_KEY = "language"

DEFAULT_CURRENCY = Currency(code="EUR", name="Euro", symbol="€")

COMMON_SYMBOLS = {
    "EUR": "€", "USD": "$", "GBP": "£", "JPY": "¥", "CNY": "¥", "BRL": "R$",
    "CAD": "C$", "AUD": "A$", "CHF": "CHF", "INR": "₹", "MXN": "$", "SGD": "S$",
    "HKD": "HK$", "NZD": "NZ$", "KRW": "₩", "TRY": "₺", "RUB": "₽", "ZAR": "R",
    "SEK": "kr", "NOK": "kr", "DKK": "kr", "PLN": "zł", "CZK": "Kč", "HUF": "Ft",
}

_PIN_RE = re.compile(r"^\d{6}$")


def _unwrap(res: ApiResponse, key: str) -> ApiResponse:
    if res.success and isinstance(res.data, dict) and res.data.get(key) is not None:
        return res.model_copy(update={"data": res.data[key]})
    return res


def _clean(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


def format_currency(amount: float, currency_info: Optional[Currency] = None, code: Optional[str] = None) -> str:
    """``-1234.5`` -> ``-€1.234,50``: dot thousands, comma decimals."""
    symbol = currency_info.symbol if currency_info else (code or "€")
    integer, decimal = f"{abs(amount):.2f}".split(".")
    integer = f"{int(integer):,}".replace(",", ".")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{integer},{decimal}"


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


class FinanceClient:
    def __init__(self, api: ApiClient):
        self.api = api
        self.store = api.store

    # WALLETS
    async def wallets_list(self): return await self.api.get("/wallets")
    async def wallet_get(self, wid): return _unwrap(await self.api.get(f"/wallets/{wid}"), "wallet")
    async def wallet_create(self, name: str, initial_balance: float = 0, currency: Optional[str] = None):
        payload = _clean({"name": name, "initial_balance": initial_balance, "currency": currency})
        return _unwrap(await self.api.post("/wallets", payload), "wallet")

    async def wallet_update(self, wid, name: Optional[str] = None, currency: Optional[str] = None):
        payload = _clean({"name": name, "currency": currency})
        return _unwrap(await self.api.put(f"/wallets/{wid}", payload), "wallet")

    async def wallet_delete(self, wid): return await self.api.delete(f"/wallets/{wid}")
    async def wallet_restore(self, wid): return _unwrap(await self.api.post(f"/wallets/{wid}/restore", {}), "wallet")
    async def wallet_balance(self, wid): return await self.api.get(f"/wallets/{wid}/balance")

    async def currencies(self) -> ApiResponse:
        res = await self.api.get("/wallets/currencies", skip_auth=True)
        if res.success and isinstance(res.data, dict) and res.data.get("currencies"):
            return ApiResponse.ok({"currencies": res.data["currencies"]}, res.message)
        return ApiResponse.fail(res.message or "Failed to fetch currencies", data={"currencies": []})

    async def saved_wallet_id(self) -> Optional[str]:
        return await self.store.get_item(SELECTED_WALLET_ID_KEY)

    async def saved_wallet_info(self) -> Optional[SavedWalletInfo]:
        raw = await self.store.get_item(SELECTED_WALLET_INFO_KEY)
        if raw:
            try:
                return SavedWalletInfo.model_validate_json(raw)
            except ValueError:
                logger.warning("Discarding unreadable saved wallet info")
        wid = await self.saved_wallet_id()
        if wid:
            return SavedWalletInfo(id=wid, currency_info=DEFAULT_CURRENCY)
        return None

    async def save_wallet_info(self, wallet: Dict[str, Any]) -> Optional[SavedWalletInfo]:
        if wallet.get("id") is None:
            logger.error("save_wallet_info called without wallet id: %r", wallet)
            return None
        info = wallet.get("currency_info")
        currency = info if isinstance(info, Currency) else (Currency(**info) if info else None)
        if currency is None and wallet.get("currency"):
            currency = await self._resolve_currency(wallet["currency"])
        saved = SavedWalletInfo(id=str(wallet["id"]), currency_info=currency or DEFAULT_CURRENCY)
        await self.store.set_item(SELECTED_WALLET_INFO_KEY, saved.model_dump_json())
        await self.store.set_item(SELECTED_WALLET_ID_KEY, saved.id)
        return saved

    async def _resolve_currency(self, code: str) -> Currency:
        code = code.upper()
        res = await self.currencies()
        for c in (res.data or {}).get("currencies", []):
            if (c.get("code") or "").upper() == code:
                return Currency(**c)
        return Currency(code=code, name=code, symbol=COMMON_SYMBOLS.get(code, code))

    # TRANSACTIONS
    async def transactions_list(self, **filters): return await self.api.get("/transactions", params=_clean(filters) or None)
    async def transaction_get(self, tid): return await self.api.get(f"/transactions/{tid}")
    async def transaction_create(self, tx: Dict[str, Any]): return await self.api.post("/transactions", tx)
    async def transaction_update(self, tid, updates: Dict[str, Any]): return await self.api.put(f"/transactions/{tid}", updates)
    async def transaction_delete(self, tid): return await self.api.delete(f"/transactions/{tid}")
    async def transaction_stats(self, **params): return await self.api.get("/transactions/stats", params=_clean(params) or None)

    async def transaction_create_with_file(
        self,
        tx: Dict[str, Any],
        file: Optional[tuple] = None,
    ) -> ApiResponse:
        """``file`` is ``(name, bytes, content_type)``; nested values go as JSON text."""
        fields: Dict[str, str] = {}
        for key, value in tx.items():
            if value is None:
                continue
            if isinstance(value, (dict, list)):
                fields[key] = json.dumps(value)
            elif isinstance(value, bool):
                fields[key] = "true" if value else "false"
            else:
                fields[key] = str(value)
        files = {"file": file} if file else None
        return await self.api.upload_form_data("/transactions", files=files, data=fields)

    # CATEGORIES
    async def categories_list(self): return _unwrap(await self.api.get("/categories"), "categories")
    async def categories_global(self): return _unwrap(await self.api.get("/categories/global", skip_auth=True), "categories")
    async def category_delete(self, cid): return await self.api.delete(f"/categories/{cid}")
    async def category_restore(self, cid): return _unwrap(await self.api.post(f"/categories/{cid}/restore", {}), "category")

    async def category_create(self, name: str, icon: Optional[str] = None, color: Optional[str] = None):
        payload = _clean({"name": name, "icon": icon, "color": color})
        return _unwrap(await self.api.post("/categories", payload), "category")

    async def category_update(self, cid, name: Optional[str] = None, icon: Optional[str] = None, color: Optional[str] = None):
        payload = _clean({"name": name, "icon": icon, "color": color})
        return _unwrap(await self.api.put(f"/categories/{cid}", payload), "category")

    # GOALS
    async def goals_list(self, page: int = 1, limit: int = 20): return await self.api.get("/goals", params={"page": page, "limit": limit})
    async def goal_get(self, gid): return _unwrap(await self.api.get(f"/goals/{gid}"), "goal")
    async def goal_create(self, goal: Dict[str, Any]): return _unwrap(await self.api.post("/goals", goal), "goal")
    async def goal_delete(self, gid): return await self.api.delete(f"/goals/{gid}")

    async def goal_update(self, gid, updates: Dict[str, Any]) -> ApiResponse:
        res = await self.api.put(f"/goals/{gid}", updates)
        if res.success and isinstance(res.data, dict) and res.data.get("goal") is not None:
            data = {"goal": res.data["goal"], "currencyConversion": res.data.get("currencyConversion")}
            return res.model_copy(update={"data": data})
        return res

    # DASHBOARD
    async def dashboard(self, wallet_id=None): return await self.api.get("/dashboard", params={"wallet_id": wallet_id} if wallet_id else None)
    async def dashboard_summary(self): return await self.api.get("/dashboard/summary")

    # FILES
    async def file_upload(self, name: str, content: bytes, content_type: str) -> ApiResponse:
        res = await self.api.upload_form_data("/files/upload", files={"file": (name, content, content_type)})
        if res.success and isinstance(res.data, dict) and res.data.get("file"):
            return ApiResponse.ok(res.data["file"], res.message)
        if res.success:
            return ApiResponse.fail("Failed to upload file")
        return res

    # OCR
    async def ocr_pending(self) -> ApiResponse:
        res = await self.api.get("/ocrai/pending")
        data = res.data if isinstance(res.data, dict) else {}
        results = data.get("results") if isinstance(data.get("results"), list) else []
        results = [{**r, "ocraiResultId": r.get("ocraiResultId") or r.get("id")} for r in results]
        pending = {"count": data.get("count") or len(results), "results": results}
        return res.model_copy(update={"data": pending})

    async def ocr_process(self, images: List[tuple]) -> ApiResponse:
        """Scan invoice images; each item is ``(name, bytes[, content_type])``.

        One image goes as the ``image`` field, several as repeated ``images``.
        """
        if not images:
            return ApiResponse.fail("No images to process")
        field = "image" if len(images) == 1 else "images"
        parts = []
        for i, image in enumerate(images):
            name, content = image[0] or f"invoice_{i}.jpg", image[1]
            content_type = image[2] if len(image) > 2 else "image/jpeg"
            parts.append((field, (name, content, content_type)))
        return await self.api.upload_form_data("/ocrai/process", files=parts)

    async def ocr_create_transactions(self, ocrai_result_id, transactions: List[Dict[str, Any]]):
        body = {"ocrai_result_id": ocrai_result_id, "transactions": transactions}
        return await self.api.post("/ocrai/create-transactions", body)

    async def ocr_batch_process(self, accepted: List[Dict[str, Any]], ignored: List[Any]):
        return await self.api.post("/ocrai/batch-process", {"accepted": accepted, "ignored": ignored})

    # VERIFICATION
    async def verification_send(self, email: str): return await self.api.post("/verification/send-code", {"email": email}, skip_auth=True)
    async def verification_resend(self, email: str): return await self.api.post("/verification/resend-code", {"email": email}, skip_auth=True)
    async def verification_verify(self, email: str, code: str):
        return await self.api.post("/verification/verify-code", {"email": email, "code": code}, skip_auth=True)

    # PASSWORD RESET
    async def password_reset_request(self, email: str): return await self.api.post("/password-reset/request", {"email": email}, skip_auth=True)
    async def password_reset_verify(self, email: str, code: str):
        return await self.api.post("/password-reset/verify-code", {"email": email, "code": code}, skip_auth=True)

    async def password_reset(self, email: str, code: str, new_password: str):
        body = {"email": email, "code": code, "newPassword": new_password}
        return await self.api.post("/password-reset/reset", body, skip_auth=True)

    # PROFILE
    async def profile_get(self): return await self.api.get("/user/settings/profile")

    async def profile_update(self, name: Optional[str] = None, email: Optional[str] = None) -> ApiResponse:
        updates = _clean({"name": name, "email": email})
        if not updates:
            return ApiResponse.fail("At least one field (name or email) must be provided")
        res = await self.api.patch("/user/settings/profile", updates)
        if res.success and name:
            await self.store.update_user_name(name)
        return res

    async def password_change(self, current_password: str, new_password: str):
        body = {"currentPassword": current_password, "newPassword": new_password}
        return await self.api.post("/user/settings/password/change", body)

    # SETTINGS
    async def settings_get(self) -> ApiResponse:
        res = await self.api.get("/user/settings")
        if res.success and isinstance(res.data, dict):
            await self._cache_settings(res.data)
            return res
        return ApiResponse.fail(res.message or "Settings endpoint not available", needs_login=res.needs_login)

    async def settings_cached(self) -> UserSettings:
        return UserSettings(
            has_pin=await self.store.get_item(HAS_PIN_KEY) == "true",
            biometric_enabled=await self.store.get_item(BIOMETRIC_ENABLED_KEY) == "true",
            language=await self.store.get_item(LANGUAGE_KEY) or "english",
        )

    async def _cache_settings(self, data: Dict[str, Any]) -> None:
        await self.store.set_item(HAS_PIN_KEY, "true" if data.get("has_pin") else "false")
        await self.store.set_item(BIOMETRIC_ENABLED_KEY, "true" if data.get("biometric_enabled") else "false")
        language = (data.get("preferences") or {}).get("language")
        if language:
            await self.store.set_item(LANGUAGE_KEY, language)

    async def pin_set(self, pin: str, current_pin: Optional[str] = None) -> ApiResponse:
        if not _PIN_RE.match(pin or ""):
            return ApiResponse.fail("PIN must be exactly 6 digits")
        res = await self.api.post("/user/settings/pin", _clean({"pin": pin, "current_pin": current_pin}))
        if res.success:
            await self.store.set_item(HAS_PIN_KEY, "true")
        return res

    async def pin_verify(self, pin: str): return await self.api.post("/user/settings/pin/verify", {"pin": pin})

    async def pin_remove(self, pin: str) -> ApiResponse:
        res = await self.api.delete("/user/settings/pin", {"pin": pin})
        if res.success:
            await self.store.set_item(HAS_PIN_KEY, "false")
            await self.store.set_item(BIOMETRIC_ENABLED_KEY, "false")
        return res

    async def biometric_set(self, enabled: bool, pin: Optional[str] = None) -> ApiResponse:
        body: Dict[str, Any] = {"enabled": enabled}
        if enabled and pin:
            body["pin"] = pin
        res = await self.api.post("/user/settings/biometric", body)
        if res.success:
            await self.store.set_item(BIOMETRIC_ENABLED_KEY, "true" if enabled else "false")
        return res

    async def preferences_update(self, language: Optional[str] = None) -> ApiResponse:
        if language:
            await self.store.set_item(LANGUAGE_KEY, language)
        return await self.api.patch("/user/settings/preferences", _clean({"language": language}))
