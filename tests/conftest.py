import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from friendpush.config import Settings
from friendpush.core.database import Base, Cafe, Friend, User, UserDevice, Visit
from friendpush.services.apns import ApnsClient, ApnsConfig, CachedCredentialProvider, ProviderTokenSigner
from friendpush.services.factory import build_alert_service, build_fanout_service

AUTHOR_ID = "author-0000-0000-0000-000000000001"
KEY_ID = "ABC123DEFG"
TEAM_ID = "TEAM123456"
BUNDLE_ID = "com.example.mugshot"

# Social graph used by the end-to-end scenarios: five friends, four iOS devices.
#   friend-1: two iOS devices
#   friend-2: one iOS device
#   friend-3: one iOS device that APNs rejects
#   friend-4: Android only
#   friend-5: no devices
FRIEND_IDS = [f"friend-{n}" for n in range(1, 6)]
IOS_TOKENS = ["token-f1-a", "token-f1-b", "token-f2", "bad-token-f3"]


@pytest.fixture
def es256_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def signing_key_pem(es256_key) -> str:
    return es256_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def public_key_pem(es256_key) -> str:
    return es256_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture
def apns_config(signing_key_pem) -> ApnsConfig:
    return ApnsConfig(
        key_id=KEY_ID,
        team_id=TEAM_ID,
        bundle_id=BUNDLE_ID,
        key_content=signing_key_pem,
        use_sandbox=True,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, fanout_max_concurrency=10)


@pytest_asyncio.fixture
async def fake_apns_http():
    """httpx client routed into the in-process fake APNs app."""
    from tests.mocks import fake_apns

    fake_apns.received.clear()
    client = AsyncClient(transport=ASGITransport(app=fake_apns.app))
    yield client
    await client.aclose()
    fake_apns.received.clear()


@pytest.fixture
def apns_received():
    from tests.mocks import fake_apns

    return fake_apns.received


@pytest_asyncio.fixture
async def apns_gateway(apns_config, fake_apns_http) -> ApnsClient:
    credentials = CachedCredentialProvider(ProviderTokenSigner(apns_config))
    return ApnsClient(config=apns_config, credentials=credentials, http_client=fake_apns_http)


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def seeded_db(session_factory):
    """Populate the scenario graph, devices, a cafe and a visit."""
    async with session_factory() as session:
        session.add(User(id=AUTHOR_ID, username="espresso_ella", avatar_url="https://cdn.example.com/ella.png"))
        for friend_id in FRIEND_IDS:
            session.add(User(id=friend_id, username=friend_id.replace("-", "_")))
        session.add_all([User(id="stranger-1"), User(id="stranger-2")])

        # Edges in both orientations
        session.add_all(
            [
                Friend(user_id=AUTHOR_ID, friend_id="friend-1"),
                Friend(user_id="friend-2", friend_id=AUTHOR_ID),
                Friend(user_id=AUTHOR_ID, friend_id="friend-3"),
                Friend(user_id="friend-4", friend_id=AUTHOR_ID),
                Friend(user_id=AUTHOR_ID, friend_id="friend-5"),
                Friend(user_id="stranger-1", friend_id="stranger-2"),
            ]
        )

        session.add_all(
            [
                UserDevice(id="dev-1", user_id="friend-1", push_token="token-f1-a", platform="ios"),
                UserDevice(id="dev-2", user_id="friend-1", push_token="token-f1-b", platform="ios"),
                UserDevice(id="dev-3", user_id="friend-2", push_token="token-f2", platform="ios"),
                UserDevice(id="dev-4", user_id="friend-3", push_token="bad-token-f3", platform="ios"),
                UserDevice(id="dev-5", user_id="friend-4", push_token="fcm-token-f4", platform="android"),
                UserDevice(id="dev-6", user_id="stranger-1", push_token="token-stranger", platform="ios"),
                UserDevice(id="dev-7", user_id=AUTHOR_ID, push_token="token-author", platform="ios"),
            ]
        )

        session.add(Cafe(id="cafe-1", name="Blue Bottle"))
        session.add(Visit(id="visit-1", user_id=AUTHOR_ID, cafe_id="cafe-1", visibility="friends"))
        await session.commit()
    return session_factory


@pytest_asyncio.fixture
async def app_with_services(test_settings, apns_gateway, seeded_db):
    """FastAPI app wired to the seeded test database and the fake APNs gateway."""
    from friendpush.main import app

    app.state.fanout_service = build_fanout_service(test_settings, apns_gateway, seeded_db)
    app.state.alert_service = build_alert_service(test_settings, apns_gateway, seeded_db)
    yield app


@pytest_asyncio.fixture
async def client(app_with_services):
    """Async HTTP client against the app (the lifespan is not run)."""
    transport = ASGITransport(app=app_with_services)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
