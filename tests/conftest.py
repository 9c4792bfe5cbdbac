"""
UniConnect - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Callable

import mongomock
import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient

# Set testing environment before the settings object is built
os.environ['ENVIRONMENT'] = 'testing'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['LOG_LEVEL'] = 'WARNING'

from uniconnect.context import AppContext
from uniconnect.database import Database
from uniconnect.main import create_app
from uniconnect.schemas import Project, ProjectIn, RegisterIn, User
from uniconnect.security import create_access_token

fake = Faker()

PASSWORD = 'testpassword123'


def student_email() -> str:
    return f"{fake.unique.user_name()}@campus.edu"


def bearer(user: User) -> dict:
    return {'Authorization': f'Bearer {create_access_token(user.id, user.role)}'}


@pytest.fixture
def database() -> Database:
    """Fresh in-memory MongoDB for each test"""
    client = mongomock.MongoClient()
    database = Database(client['uniconnect_test'], client=client)
    database.ensure_indexes()
    return database


@pytest.fixture
def context(database: Database) -> AppContext:
    return AppContext.build(database)


@pytest.fixture
def app(context: AppContext):
    return create_app(context)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest.fixture
def register_data() -> dict:
    return {
        'name': fake.name()[:50],
        'email': student_email(),
        'password': PASSWORD,
        'university': 'State University',
        'skills': ['python', 'react'],
    }


@pytest.fixture
def user_factory(context: AppContext) -> Callable[..., User]:
    """Register users straight through the service"""
    def make(role: str = 'user', **overrides) -> User:
        data = {
            'name': fake.name()[:50],
            'email': student_email(),
            'password': PASSWORD,
            'university': 'State University',
        }
        data.update(overrides)
        user = context.users.register(RegisterIn(**data))
        if role != 'user':
            user = context.users.set_role(user.id, role)
        return user
    return make


@pytest.fixture
def project_factory(context: AppContext) -> Callable[..., Project]:
    def make(owner: User, privacy: str = 'public', **overrides) -> Project:
        data = {
            'title': fake.catch_phrase()[:100],
            'description': 'A collaborative project for testing purposes.',
            'techStack': ['python', 'fastapi'],
            'privacy': privacy,
        }
        data.update(overrides)
        return context.projects.create(owner.id, ProjectIn(**data))
    return make


@pytest.fixture
def owner(user_factory) -> User:
    return user_factory()


@pytest.fixture
def member(user_factory) -> User:
    return user_factory()


@pytest.fixture
def outsider(user_factory) -> User:
    return user_factory()


@pytest.fixture
def admin(user_factory) -> User:
    return user_factory(role='admin')


@pytest.fixture
def auth_headers() -> Callable[[User], dict]:
    """Bearer headers for any user"""
    return bearer
