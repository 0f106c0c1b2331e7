"""
OH Noise Survey - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['AUTOSAVE_ENABLED'] = 'false'
os.environ['LOG_FILE'] = ''

from ohsurvey.main import app
from ohsurvey.core.database import Base, get_db
from ohsurvey.models.user import User, UserRole
from ohsurvey.core.security import get_password_hash, create_access_token
from ohsurvey.services.session_registry import session_registry

fake = Faker()

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


@pytest.fixture(autouse=True)
def clear_sessions():
    """Open survey sessions must not leak between tests"""
    session_registry.clear()
    yield
    session_registry.clear()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory():
    """Factory for database sessions opened outside a request, as autosave does"""
    return TestSessionLocal


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, password: str, role: UserRole) -> User:
    user = User(
        email=fake.unique.email(),
        hashed_password=get_password_hash(password),
        full_name=fake.name(),
        organization=fake.company(),
        role=role,
        is_active=True,
        is_verified=True
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a surveyor"""
    return await _create_user(db_session, 'testpassword123', UserRole.SURVEYOR)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second surveyor, for ownership checks"""
    return await _create_user(db_session, 'otherpassword123', UserRole.SURVEYOR)


def _headers(user: User) -> dict:
    token_data = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value
    }
    token = create_access_token(token_data)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user"""
    return _headers(test_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    return _headers(other_user)


@pytest_asyncio.fixture
async def survey_id(client: AsyncClient, auth_headers: dict) -> str:
    """A fresh survey owned by test_user"""
    response = await client.post(
        '/api/v1/surveys',
        json={'client': fake.company(), 'project': 'Noise baseline', 'site': fake.city()},
        headers=auth_headers
    )
    assert response.status_code == 201
    return response.json()['survey']['id']
