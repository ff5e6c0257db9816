"""Tests for FinanceClient endpoint wrappers and formatting helpers."""

import json

import httpx
import pytest

from whclient.finance_client import FinanceClient, format_currency, format_file_size
from whclient.models import Currency, SavedWalletInfo

from conftest import bearer, refresh_ok


@pytest.fixture
def finance(client):
    return FinanceClient(client)


class TestWallets:
    @pytest.mark.asyncio
    async def test_wallet_get_unwraps_wallet(self, finance, backend):
        backend.on("GET", "/wallets/4", httpx.Response(200, json={"success": True, "data": {"wallet": {"id": 4, "name": "Cash"}}}))

        res = await finance.wallet_get(4)

        assert res.data == {"id": 4, "name": "Cash"}

    @pytest.mark.asyncio
    async def test_wallet_create_drops_unset_fields(self, finance, backend):
        backend.on("POST", "/wallets", httpx.Response(201, json={"success": True, "data": {"wallet": {"id": 5}}}))

        await finance.wallet_create("Savings")

        assert json.loads(backend.requests[0].content) == {"name": "Savings", "initial_balance": 0}

    @pytest.mark.asyncio
    async def test_currencies_failure_keeps_shape(self, finance, backend):
        backend.on("GET", "/wallets/currencies", httpx.Response(500, json={"success": False}))

        res = await finance.currencies()

        assert res.success is False
        assert res.data == {"currencies": []}

    @pytest.mark.asyncio
    async def test_save_wallet_info_resolves_currency_from_api(self, finance, backend, store):
        backend.on("GET", "/wallets/currencies", httpx.Response(200, json={
            "success": True,
            "data": {"currencies": [{"code": "USD", "name": "US Dollar", "symbol": "$"}]},
        }))

        saved = await finance.save_wallet_info({"id": 7, "currency": "usd"})

        assert saved.currency_info == Currency(code="USD", name="US Dollar", symbol="$")
        assert await finance.saved_wallet_id() == "7"
        assert await finance.saved_wallet_info() == saved

    @pytest.mark.asyncio
    async def test_save_wallet_info_falls_back_to_symbol_table(self, finance, backend):
        backend.on("GET", "/wallets/currencies", httpx.Response(200, json={"success": True, "data": {"currencies": []}}))

        saved = await finance.save_wallet_info({"id": 8, "currency": "GBP"})

        assert saved.currency_info == Currency(code="GBP", name="GBP", symbol="£")

    @pytest.mark.asyncio
    async def test_save_wallet_info_requires_id(self, finance, store):
        assert await finance.save_wallet_info({"currency": "EUR"}) is None
        assert await finance.saved_wallet_id() is None

    @pytest.mark.asyncio
    async def test_saved_wallet_info_from_bare_id(self, finance, store):
        await store.set_item("selectedWalletId", "3")

        info = await finance.saved_wallet_info()

        assert info == SavedWalletInfo(id="3", currency_info=Currency(code="EUR", name="Euro", symbol="€"))


class TestTransactions:
    @pytest.mark.asyncio
    async def test_list_drops_empty_filters(self, finance, backend):
        backend.on("GET", "/transactions", httpx.Response(200, json={"success": True, "data": {"transactions": []}}))

        await finance.transactions_list(wallet_id=2, type=None, page=1)

        params = backend.requests[0].url.params
        assert dict(params) == {"wallet_id": "2", "page": "1"}

    @pytest.mark.asyncio
    async def test_create_with_file_encodes_fields(self, finance, backend):
        backend.on("POST", "/transactions", httpx.Response(201, json={"success": True, "data": {"transaction": {"id": 1}}}))

        res = await finance.transaction_create_with_file(
            {"amount": 12.5, "tags": ["food"], "is_recurring": False, "notes": None},
            file=("receipt.jpg", b"jpeg", "image/jpeg"),
        )

        assert res.success is True
        body = backend.requests[0].content
        assert b'name="amount"\r\n\r\n12.5' in body
        assert b'["food"]' in body
        assert b'name="is_recurring"\r\n\r\nfalse' in body
        assert b'name="notes"' not in body
        assert b'filename="receipt.jpg"' in body


class TestCategories:
    @pytest.mark.asyncio
    async def test_list_unwraps_categories(self, finance, backend):
        backend.on("GET", "/categories", httpx.Response(200, json={"success": True, "data": {"categories": [{"id": 1}]}}))

        res = await finance.categories_list()

        assert res.data == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_create_drops_unset_fields(self, finance, backend):
        backend.on("POST", "/categories", httpx.Response(201, json={"success": True, "data": {"category": {"id": 3}}}))

        res = await finance.category_create("Food", color="#ff0000")

        assert res.data == {"id": 3}
        assert json.loads(backend.requests[0].content) == {"name": "Food", "color": "#ff0000"}

    @pytest.mark.asyncio
    async def test_update_and_delete_paths(self, finance, backend):
        backend.on("PUT", "/categories/3", httpx.Response(200, json={"success": True, "data": {"category": {"id": 3}}}))
        backend.on("DELETE", "/categories/3", httpx.Response(200, json={"success": True}))

        await finance.category_update(3, name="Groceries")
        res = await finance.category_delete(3)

        assert res.success is True
        assert json.loads(backend.calls("PUT", "/categories/3")[0].content) == {"name": "Groceries"}
        assert len(backend.calls("DELETE", "/categories/3")) == 1

    @pytest.mark.asyncio
    async def test_global_categories_need_no_login(self, finance, backend, store):
        await store.clear_session()
        backend.on("GET", "/categories/global", httpx.Response(200, json={"success": True, "data": {"categories": []}}))

        res = await finance.categories_global()

        assert res.success is True
        assert "authorization" not in backend.requests[0].headers


class TestGoals:
    @pytest.mark.asyncio
    async def test_goal_update_keeps_conversion(self, finance, backend):
        backend.on("PUT", "/goals/1", httpx.Response(200, json={
            "success": True,
            "data": {"goal": {"id": 1}, "currencyConversion": {"rate": 1.1}, "extra": True},
        }))

        res = await finance.goal_update(1, {"target_amount": 500})

        assert res.data == {"goal": {"id": 1}, "currencyConversion": {"rate": 1.1}}

    @pytest.mark.asyncio
    async def test_goals_list_paginates(self, finance, backend):
        backend.on("GET", "/goals", httpx.Response(200, json={"success": True, "data": {"goals": []}}))

        await finance.goals_list(page=2, limit=5)

        assert dict(backend.requests[0].url.params) == {"page": "2", "limit": "5"}


class TestOcr:
    @pytest.mark.asyncio
    async def test_pending_adds_result_ids(self, finance, backend):
        backend.on("GET", "/ocrai/pending", httpx.Response(200, json={
            "success": True,
            "data": {"results": [{"id": 11}, {"id": 12, "ocraiResultId": 99}]},
        }))

        res = await finance.ocr_pending()

        assert res.data["count"] == 2
        assert [r["ocraiResultId"] for r in res.data["results"]] == [11, 99]

    @pytest.mark.asyncio
    async def test_pending_failure_keeps_shape_and_login_flag(self, finance, store):
        await store.clear_session()

        res = await finance.ocr_pending()

        assert res.needs_login is True
        assert res.data == {"count": 0, "results": []}

    @pytest.mark.asyncio
    async def test_process_single_image_is_retried_after_refresh(self, finance, backend):
        def process(request):
            if bearer(request) != "Bearer access-2":
                return httpx.Response(401, json={"success": False, "message": "Invalid token"})
            return httpx.Response(200, json={"success": True, "data": {"ocrai_result_id": 5, "transactions": []}})

        backend.on("POST", "/ocrai/process", process)
        backend.on("POST", "/auth/refresh", refresh_ok())

        res = await finance.ocr_process([(None, b"\xff\xd8jpeg")])

        assert res.success is True
        assert res.data["ocrai_result_id"] == 5
        attempts = backend.calls("POST", "/ocrai/process")
        assert [bearer(r) for r in attempts] == ["Bearer access-1", "Bearer access-2"]
        for request in attempts:
            assert request.headers["content-type"].startswith("multipart/form-data")
            assert b'name="image"; filename="invoice_0.jpg"' in request.content
            assert b"Content-Type: image/jpeg" in request.content

    @pytest.mark.asyncio
    async def test_process_several_images_uses_images_field(self, finance, backend):
        backend.on("POST", "/ocrai/process", httpx.Response(200, json={"success": True, "data": {}}))

        await finance.ocr_process([("a.png", b"a", "image/png"), ("b.png", b"b", "image/png")])

        body = backend.requests[0].content
        assert body.count(b'name="images"') == 2
        assert b'name="image";' not in body

    @pytest.mark.asyncio
    async def test_process_without_images_skips_network(self, finance, backend):
        res = await finance.ocr_process([])

        assert res.success is False
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_create_transactions_body(self, finance, backend):
        backend.on("POST", "/ocrai/create-transactions", httpx.Response(201, json={"success": True, "data": {}}))

        await finance.ocr_create_transactions(5, [{"amount": 10}])

        body = json.loads(backend.requests[0].content)
        assert body == {"ocrai_result_id": 5, "transactions": [{"amount": 10}]}

    @pytest.mark.asyncio
    async def test_batch_process_body(self, finance, backend):
        backend.on("POST", "/ocrai/batch-process", httpx.Response(200, json={"success": True, "data": {}}))

        await finance.ocr_batch_process([{"ocraiResultId": 1}], [2])

        assert json.loads(backend.requests[0].content) == {"accepted": [{"ocraiResultId": 1}], "ignored": [2]}


class TestAccountRecovery:
    @pytest.mark.asyncio
    async def test_verification_is_unauthenticated(self, finance, backend):
        backend.on("POST", "/verification/verify-code", httpx.Response(200, json={"success": True}))

        res = await finance.verification_verify("ada@example.com", "123456")

        assert res.success is True
        request = backend.requests[0]
        assert "authorization" not in request.headers
        assert json.loads(request.content) == {"email": "ada@example.com", "code": "123456"}

    @pytest.mark.asyncio
    async def test_password_reset_body(self, finance, backend, store):
        await store.clear_session()
        backend.on("POST", "/password-reset/reset", httpx.Response(200, json={"success": True}))

        res = await finance.password_reset("ada@example.com", "123456", "n3w-secret")

        assert res.success is True
        assert json.loads(backend.requests[0].content) == {
            "email": "ada@example.com", "code": "123456", "newPassword": "n3w-secret",
        }


class TestProfile:
    @pytest.mark.asyncio
    async def test_update_patches_and_renames_locally(self, finance, backend, store):
        backend.on("PATCH", "/user/settings/profile", httpx.Response(200, json={"success": True, "data": {"name": "Ada L."}}))

        res = await finance.profile_update(name="Ada L.")

        assert res.success is True
        assert json.loads(backend.requests[0].content) == {"name": "Ada L."}
        assert (await store.get_user_data()).user_name == "Ada L."

    @pytest.mark.asyncio
    async def test_update_needs_a_field(self, finance, backend):
        res = await finance.profile_update()

        assert res.success is False
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_password_change_body(self, finance, backend):
        backend.on("POST", "/user/settings/password/change", httpx.Response(200, json={"success": True}))

        await finance.password_change("old", "new")

        assert json.loads(backend.requests[0].content) == {"currentPassword": "old", "newPassword": "new"}


class TestSettings:
    @pytest.mark.asyncio
    async def test_pin_must_be_six_digits(self, finance, backend):
        res = await finance.pin_set("12a456")

        assert res.message == "PIN must be exactly 6 digits"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_settings_are_cached(self, finance, backend):
        backend.on("GET", "/user/settings", httpx.Response(200, json={
            "success": True,
            "data": {"has_pin": True, "biometric_enabled": False, "preferences": {"language": "italian"}},
        }))

        await finance.settings_get()
        cached = await finance.settings_cached()

        assert cached.has_pin is True
        assert cached.biometric_enabled is False
        assert cached.language == "italian"

    @pytest.mark.asyncio
    async def test_pin_remove_sends_body_and_resets_flags(self, finance, backend, store):
        await store.set_item("has_pin", "true")
        await store.set_item("biometric_enabled", "true")
        backend.on("DELETE", "/user/settings/pin", httpx.Response(200, json={"success": True}))

        await finance.pin_remove("123456")

        assert json.loads(backend.requests[0].content) == {"pin": "123456"}
        cached = await finance.settings_cached()
        assert (cached.has_pin, cached.biometric_enabled) == (False, False)


class TestFormatting:
    def test_format_currency_with_info(self):
        assert format_currency(-1234.5, Currency(code="EUR", name="Euro", symbol="€")) == "-€1.234,50"

    def test_format_currency_with_code(self):
        assert format_currency(1234567.891, code="$") == "$1.234.567,89"

    def test_format_currency_default_symbol(self):
        assert format_currency(0) == "€0,00"

    def test_format_file_size(self):
        assert format_file_size(512) == "512 B"
        assert format_file_size(2048) == "2.0 KB"
        assert format_file_size(5 * 1024 * 1024) == "5.0 MB"
