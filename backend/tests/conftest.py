"""
Test configuration and fixtures.
Uses a temporary SQLite database (aiosqlite) per test.
"""
import os
import uuid as uuid_module

# Set test environment before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./cardforge_test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_dummy"
os.environ["FAL_KEY"] = "test-fal-key"
os.environ["CREDITS_PER_MEGAPIXEL"] = "10"
os.environ["STARTING_CREDITS"] = "0"
os.environ["OUTBOUND_RETRY_ATTEMPTS"] = "3"
os.environ["OUTBOUND_RETRY_DELAY_SECONDS"] = "0"
os.environ["STORAGE_PUBLIC_BASE_URL"] = "https://cdn.cardforge.test"
os.environ.pop("FIREBASE_PROJECT_ID", None)

import pytest
from typing import AsyncGenerator, List, Optional, Tuple
from unittest.mock import patch, MagicMock

import httpx
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.ai.base import GeneratedImage, ImageProvider
from cardforge.database import Database
from cardforge.models.user import User
from cardforge.storage.object_storage import ObjectStorage

MEMBERSHIP_URL_PREFIX = "https://www.patreon.com/"
FAKE_IMAGE_URL = "https://fal.media/files/test/generated.jpg"
FAKE_IMAGE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-bytes"


def membership_payload(patron_status: Optional[str]) -> dict:
    """Identity response in the subscription provider's format."""
    included = []
    if patron_status is not None:
        included.append({
            "type": "member",
            "id": "member-1",
            "attributes": {"patron_status": patron_status},
        })
    return {"data": {"type": "user", "id": "patron-1"}, "included": included}


class FakeImageProvider(ImageProvider):
    """Image provider double: records calls, returns a fixed image or raises `error`."""

    name = "fake"

    def __init__(self):
        self.error: Optional[Exception] = None
        self.calls: List[Tuple[str, int, int]] = []

    async def generate(self, prompt: str, width: int, height: int) -> GeneratedImage:
        self.calls.append((prompt, width, height))
        if self.error is not None:
            raise self.error
        return GeneratedImage(
            image_url=FAKE_IMAGE_URL,
            width=width,
            height=height,
            content_type="image/jpeg",
            seed=42,
            has_nsfw_concepts=[False],
            timings={"inference": 1.2},
            raw={"images": [{"url": FAKE_IMAGE_URL}], "seed": 42},
        )

    def is_configured(self) -> bool:
        return True


class OutboundHandler:
    """
    httpx.MockTransport handler for outbound GETs: membership lookups and
    image downloads. Counts calls; `*_status` forces an error status.
    """

    def __init__(self):
        self.patron_status: Optional[str] = "active_patron"
        self.membership_status = 200
        self.download_status = 200
        self.membership_calls = 0
        self.download_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(MEMBERSHIP_URL_PREFIX):
            self.membership_calls += 1
            if self.membership_status != 200:
                return httpx.Response(self.membership_status, json={"errors": []})
            return httpx.Response(200, json=membership_payload(self.patron_status))

        self.download_calls += 1
        if self.download_status != 200:
            return httpx.Response(self.download_status)
        return httpx.Response(200, content=FAKE_IMAGE_BYTES, headers={"content-type": "image/jpeg"})


@pytest.fixture(scope="function")
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Connected Database on a fresh SQLite file."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await database.connect()
    await database.create_all()
    yield database
    await database.drop_all()
    await database.disconnect()


@pytest.fixture(scope="function")
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with database.session() as session:
        yield session


async def _create_user(db_session: AsyncSession, credits: int, label: str) -> User:
    user = User(
        id=str(uuid_module.uuid4()),
        firebase_uid=f"firebase-{label}-{uuid_module.uuid4().hex[:8]}",
        email=f"{label}-{uuid_module.uuid4().hex[:6]}@example.com",
        credits=credits
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user with 10 credits."""
    return await _create_user(db_session, credits=10, label="test")


@pytest.fixture(scope="function")
async def test_user_no_credits(db_session: AsyncSession) -> User:
    """Create a test user with no credits."""
    return await _create_user(db_session, credits=0, label="nocredits")


@pytest.fixture(scope="function")
def outbound() -> OutboundHandler:
    return OutboundHandler()


@pytest.fixture(scope="function")
async def http_client(outbound: OutboundHandler) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Outbound HTTP client served by the mock handler."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(outbound)) as client:
        yield client


@pytest.fixture(scope="function")
def image_provider() -> FakeImageProvider:
    return FakeImageProvider()


@pytest.fixture(scope="function")
def s3_client() -> MagicMock:
    return MagicMock(name="s3_client")


@pytest.fixture(scope="function")
def object_storage(s3_client: MagicMock) -> ObjectStorage:
    return ObjectStorage(client=s3_client, bucket="test-bucket", public_base_url="https://cdn.cardforge.test")


def get_test_app(
    database: Database,
    db_session: AsyncSession,
    user: User,
    provider: ImageProvider,
    storage: ObjectStorage,
    http_client: httpx.AsyncClient,
) -> FastAPI:
    """Create a test FastAPI app with overridden dependencies."""
    from cardforge.main import create_app
    from cardforge.database import get_db
    from cardforge.auth.dependencies import get_current_user
    from cardforge.ai.factory import get_image_provider
    from cardforge.storage.object_storage import get_object_storage
    from cardforge.utils.http import get_http_client

    app = create_app(database=database)
    # ASGITransport does not run the lifespan
    app.state.database = database
    app.state.http_client = http_client

    async def override_get_db():
        yield db_session

    async def override_get_current_user():
        return user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_image_provider] = lambda: provider
    app.dependency_overrides[get_object_storage] = lambda: storage
    app.dependency_overrides[get_http_client] = lambda: http_client

    return app


@pytest.fixture(scope="function")
async def client(
    database: Database,
    db_session: AsyncSession,
    test_user: User,
    image_provider: FakeImageProvider,
    object_storage: ObjectStorage,
    http_client: httpx.AsyncClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = get_test_app(database, db_session, test_user, image_provider, object_storage, http_client)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client_no_credits(
    database: Database,
    db_session: AsyncSession,
    test_user_no_credits: User,
    image_provider: FakeImageProvider,
    object_storage: ObjectStorage,
    http_client: httpx.AsyncClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for user with no credits."""
    app = get_test_app(database, db_session, test_user_no_credits, image_provider, object_storage, http_client)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def mock_stripe_checkout():
    """Mock Stripe Checkout Session creation."""
    with patch("stripe.checkout.Session.create") as mock:
        mock.return_value = MagicMock(
            id="cs_test_123",
            url="https://checkout.stripe.com/c/pay/cs_test_123",
        )
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    """Mock Stripe webhook signature verification."""
    with patch("stripe.Webhook.construct_event") as mock:
        yield mock
