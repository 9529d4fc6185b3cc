import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from branch_transfers.database import create_db_engine, create_session_factory, get_db, init_db
from branch_transfers.main import app
from branch_transfers.models.transfer import TransferType
from branch_transfers.models.user import User
from branch_transfers.schemas.transfer import TransferCreate
from branch_transfers.services.auth_service import create_access_token
from branch_transfers.services.transfer_workflow import TransferWorkflow


@pytest.fixture
def engine():
    """In-memory database shared by every connection of one test."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def workflow(db):
    return TransferWorkflow(db, strict=True)


@pytest.fixture
def permissive_workflow(db):
    return TransferWorkflow(db, strict=False)


def make_transfer(**overrides) -> TransferCreate:
    data = {
        "transfer_type": TransferType.ASSET,
        "from_branch_id": 1,
        "to_branch_id": 2,
        "reason": "Rebalancing equipment",
    }
    data.update(overrides)
    return TransferCreate(**data)


@pytest.fixture
def users(db):
    """One user per role. Password hashes are placeholders; tests use tokens."""
    created = {}
    for username, role in (("admin", "admin"), ("approver", "approver"), ("staff", "staff")):
        user = User(username=username, display_name=username.title(), password_hash="x", role=role)
        db.add(user)
        created[username] = user
    db.commit()
    for user in created.values():
        db.refresh(user)
    return created


@pytest.fixture
def api(session_factory, users):
    """Return a factory of TestClients authenticated as the given username."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    def client_for(username: str | None = "approver") -> TestClient:
        client = TestClient(app)
        if username:
            user = users[username]
            client.cookies.set("token", create_access_token(user.id, user.username))
        return client

    yield client_for
    app.dependency_overrides.clear()


@pytest.fixture
def transfer_data():
    return make_transfer
