"""
Tests for coded error responses.
"""

import pytest

from config import settings
from conftest import ANDROID_CHROME_UA
from utils.errors import (
    KnownErrorCode,
    KnownHTTPException,
    configuration_error,
    forbidden,
    unauthorized,
)


class TestKnownHTTPException:
    def test_detail_without_debug_message(self):
        exc = forbidden(KnownErrorCode.BANNED_USER)
        assert exc.status_code == 403
        assert exc.detail == "U2002"
        assert exc.details == {}

    def test_detail_with_debug_message(self):
        exc = KnownHTTPException(404, KnownErrorCode.NOT_FOUND, "Order not found")
        assert exc.detail == "U1000 - Order not found"
        assert exc.debug_message == "Order not found"

    def test_unauthorized_sets_challenge_header(self):
        exc = unauthorized(KnownErrorCode.NO_TOKEN)
        assert exc.headers == {"WWW-Authenticate": "Bearer"}

    def test_configuration_error(self):
        exc = configuration_error("missing config", details={"school_id": 3})
        assert exc.status_code == 500
        assert exc.code == KnownErrorCode.CONFIGURATION_ERROR
        assert exc.details == {"school_id": 3}


class TestErrorBody:
    """Body layout produced by the application error handlers."""

    @pytest.mark.asyncio
    async def test_details_hidden_outside_debug(self, async_client, seed, monkeypatch):
        monkeypatch.setattr(settings, "DEBUG", False)
        user = await seed.user()
        _, _, refresh = await seed.session_tokens(user.id)

        resp = await async_client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": refresh},
            headers={"User-Agent": ANDROID_CHROME_UA, "CF-Connecting-IP": "198.51.100.7"},
        )

        assert resp.json() == {"code": "U2005", "detail": "U2005"}

    @pytest.mark.asyncio
    async def test_details_shown_in_debug(self, async_client, seed, monkeypatch):
        monkeypatch.setattr(settings, "DEBUG", True)
        user = await seed.user()
        _, _, refresh = await seed.session_tokens(user.id)

        resp = await async_client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": refresh},
            headers={"User-Agent": ANDROID_CHROME_UA, "CF-Connecting-IP": "198.51.100.7"},
        )

        body = resp.json()
        assert body["code"] == "U2005"
        assert isinstance(body["details"]["activity_id"], int)

    @pytest.mark.asyncio
    async def test_not_linked_details(self, async_client, fake_google, monkeypatch):
        monkeypatch.setattr(settings, "DEBUG", True)
        fake_google.add_account("g-token", "google-sub-9", "stranger@gmail.com")

        resp = await async_client.post(
            "/api/v1/auth/login/Google", json={"flow": "token", "grant_value": "g-token"}
        )

        details = resp.json()["details"]
        assert details["provider"] == "Google"
        assert details["identifier"] == "google-sub-9"
        assert "stranger@gmail.com" not in details.values()
        assert len(details["email_hash"]) == 64

    @pytest.mark.asyncio
    async def test_known_validation_error_body(self, async_client, seed):
        school = await seed.school()
        user = await seed.user()
        await seed.member(user.id, school.id)
        _, access, _ = await seed.session_tokens(user.id)

        resp = await async_client.patch(
            "/api/v1/member/me/settings",
            json={"e_invoice_barcode": "nope"},
            headers={"Authorization": f"Bearer {access}"},
        )

        assert resp.status_code == 422
        assert resp.json() == {"code": "U4002", "detail": "U4002"}
