"""
Pytest configuration and fixtures for the membership backend tests.

Provides:
- Async SQLite in-memory database shared by the app and direct-DB fixtures
- A fake Google OAuth server behind ``httpx.MockTransport``
- AsyncClient for the FastAPI app with ``get_db`` and the Google client overridden
- Seeding helpers for users, staff, schools, orders and system configuration
"""

from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from auth.google_service import get_google_client
from auth.jwt_service import create_token_pair
from config import settings
from database import Base, enable_sqlite_foreign_keys, get_db
from main import app
from models import (
    FederatedAccount,
    FederatedProvider,
    MembershipPurchaseChannel,
    PartnerPlan,
    PartnerSchool,
    PersonalMembershipOrder,
    SchoolAccountConfig,
    StaffPermission,
    StudentMember,
    SystemConfiguration,
    UnionStaff,
    User,
    UserRole,
)
from services.device_store import DeviceTrustStore
from services.fingerprint import extract_fingerprint
from utils.hashing import hash_password

IPHONE_SAFARI_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
)
ANDROID_CHROME_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36"
)

# Peer address httpx.ASGITransport reports for every request
TEST_PEER_IP = "127.0.0.1"


class FakeGoogle:
    """
    Minimal stand-in for Google's token and userinfo endpoints.

    ``codes`` maps authorization codes to access tokens, ``accounts`` maps
    access tokens to userinfo claims.
    """

    def __init__(self):
        self.codes: Dict[str, str] = {}
        self.accounts: Dict[str, Dict[str, str]] = {}
        self.requests: list = []

    def add_account(
        self, access_token: str, sub: str, email: str, code: Optional[str] = None
    ) -> None:
        self.accounts[access_token] = {"sub": sub, "email": email}
        if code:
            self.codes[code] = access_token

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url == settings.GOOGLE_TOKEN_URL:
            form = parse_qs(request.content.decode())
            code = form.get("code", [None])[0]
            if form.get("grant_type", [None])[0] != "authorization_code":
                return httpx.Response(400, json={"error": "unsupported_grant_type"})
            if code not in self.codes:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(
                200, json={"access_token": self.codes[code], "token_type": "Bearer"}
            )

        if url == settings.GOOGLE_USERINFO_URL:
            auth_header = request.headers.get("authorization", "")
            token = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else ""
            if token not in self.accounts:
                return httpx.Response(401, json={"error": "invalid_token"})
            return httpx.Response(200, json=self.accounts[token])

        return httpx.Response(404)


@pytest_asyncio.fixture
async def session_factory():
    """
    In-memory SQLite database, created fresh for each test.

    Yields:
        async_sessionmaker bound to the test engine.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
    )
    enable_sqlite_foreign_keys(engine.sync_engine)

    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        future=True,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_google():
    return FakeGoogle()


@pytest_asyncio.fixture
async def async_client(session_factory, fake_google):
    """
    AsyncClient pointing to the FastAPI app, backed by the test database
    and the fake Google server.

    Yields:
        httpx.AsyncClient: Async HTTP client for making requests to the app.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_google_client():
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(fake_google.handler)
        ) as client:
            yield client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_google_client] = override_get_google_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Seeding helpers ──────────────────────────────────────────────────


@pytest.fixture
def seed(session_factory):
    """Namespace of async helpers that write directly to the test database."""
    return Seeder(session_factory)


class Seeder:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def school(
        self,
        short_name: str = "仁武高中",
        full_name: str = "高雄市立仁武高級中學",
        plan: PartnerPlan = PartnerPlan.Combined,
        domain_name: Optional[str] = "rwm.kh.edu.tw",
        student_username_format: str = r"^s([0-9]{7})@",
    ) -> PartnerSchool:
        async with self.session_factory() as db:
            school = PartnerSchool(short_name=short_name, full_name=full_name, plan=plan)
            if domain_name:
                school.google_account_config = SchoolAccountConfig(
                    username_format="s＋學號",
                    student_username_format=student_username_format,
                    password_format="請洽本校資訊組",
                    domain_name=domain_name,
                )
            db.add(school)
            await db.commit()
            return school

    async def user(self, email: str = "someone@example.com", is_active: bool = True) -> User:
        async with self.session_factory() as db:
            user = User(primary_email=email, is_active=is_active)
            db.add(user)
            await db.commit()
            return user

    async def member(
        self,
        user_id: Optional[int],
        school_id: int,
        student_id: Optional[str] = "1234567",
        activated: bool = True,
        channel: MembershipPurchaseChannel = MembershipPurchaseChannel.PartnerFree,
        expired_at: Optional[datetime] = None,
    ) -> StudentMember:
        async with self.session_factory() as db:
            member = StudentMember(
                user_id=user_id,
                school_attended_id=school_id,
                student_id=student_id,
                purchase_channel=channel,
                activated_at=datetime.now(timezone.utc) if activated else None,
                expired_at=expired_at,
            )
            db.add(member)
            await db.commit()
            return member

    async def system_config(
        self, contract_end_date: Optional[datetime], service_status: str = "Normal"
    ) -> SystemConfiguration:
        async with self.session_factory() as db:
            config = SystemConfiguration(
                service_status=service_status, contract_end_date=contract_end_date
            )
            db.add(config)
            await db.commit()
            return config

    async def federated_account(
        self,
        user_id: int,
        identifier: str,
        email: str,
        provider: FederatedProvider = FederatedProvider.Google,
    ) -> FederatedAccount:
        async with self.session_factory() as db:
            account = FederatedAccount(
                provider=provider,
                provider_identifier=identifier,
                email=email,
                user_id=user_id,
            )
            db.add(account)
            await db.commit()
            return account

    async def staff(
        self,
        username: str = "staff",
        password: str = "staff-password",
        permissions=(StaffPermission.MANAGE_SCHOOLS,),
        is_active: bool = True,
    ) -> User:
        async with self.session_factory() as db:
            user = User(primary_email=f"{username}@ukhsc.org", is_active=is_active)
            db.add(user)
            await db.flush()
            db.add(
                UnionStaff(
                    user_id=user.id,
                    username=username,
                    password_hash=hash_password(password),
                    permissions=[p.value for p in permissions],
                )
            )
            await db.commit()
            return user

    async def order(
        self, school_id: int, is_paid: bool = False
    ) -> PersonalMembershipOrder:
        async with self.session_factory() as db:
            member = StudentMember(
                school_attended_id=school_id,
                purchase_channel=MembershipPurchaseChannel.Personal,
            )
            db.add(member)
            await db.flush()
            order = PersonalMembershipOrder(
                member_id=member.id,
                school_id=school_id,
                class_name="高二仁",
                number="03",
                real_name="龔曉明",
                need_sticker=True,
                is_paid=is_paid,
            )
            db.add(order)
            await db.commit()
            return order

    async def session_tokens(
        self,
        user_id: int,
        roles=(),
        user_agent: str = IPHONE_SAFARI_UA,
        ip_address: Optional[str] = TEST_PEER_IP,
    ) -> Tuple[int, str, str]:
        """Register a device for ``user_id`` and mint tokens bound to it."""
        async with self.session_factory() as db:
            device = await DeviceTrustStore(db).create_device(
                user_id, extract_fingerprint({"User-Agent": user_agent}), ip_address
            )
        pair = create_token_pair(user_id, [UserRole(r) for r in roles], device.id)
        return device.id, pair.access_token, pair.refresh_token


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
