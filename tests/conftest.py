import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event, func, select

from taskboard.db import get_session, init_db, make_engine, make_sessionmaker
from taskboard.main import app


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def client(session_factory):
    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def count_rows(session_factory):
    def count(model) -> int:
        with session_factory() as session:
            return session.scalar(select(func.count()).select_from(model))

    return count


@pytest.fixture
def statements(engine):
    """SQL statements sent to the database while the test runs."""
    seen: list[str] = []

    def record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield seen
    event.remove(engine, "before_cursor_execute", record)


@pytest.fixture
def alice(client):
    res = client.post("/users", json={"name": "Alice Smith", "email": "a@x.com"})
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def bob(client):
    res = client.post("/users", json={"name": "Bob Jones", "email": "b@x.com"})
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def board(client, alice):
    res = client.post("/boards", json={"name": "Sprint Board", "adminUserId": alice["id"]})
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def task_list(client, board):
    res = client.post("/boards/lists", json={"name": "To Do List", "boardId": board["id"]})
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def card(client, task_list, alice):
    res = client.post(
        "/boards/lists/cards",
        json={
            "name": "Fix bug X",
            "description": "Crash on empty input",
            "listId": task_list["id"],
            "ownerUserId": alice["id"],
        },
    )
    assert res.status_code == 201
    return res.json()
