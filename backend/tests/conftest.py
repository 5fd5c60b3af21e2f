"""
Pytest 配置和共享 fixtures
"""
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base, enable_sqlite_foreign_keys, get_db
from app.models.task import HttpTask
from app.models.task_definition import TaskDefinition
from app.main import create_app


# ============== 数据库 Fixtures ==============

@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """创建临时文件数据库引擎（分发线程与测试线程各用独立连接）"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """数据库会话工厂"""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """创建数据库会话"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sample_task(db_session) -> HttpTask:
    """Insert an HttpTask row directly into the DB."""
    task = HttpTask(
        name="Ping",
        cron_expr="0 */5 * * * *",
        url="http://example.test/ok",
        method="GET",
        headers=None,
        body=None,
        timeout=10,
    )
    db_session.add(task)
    db_session.commit()
    db_session.refresh(task)
    return task


def _build_definition(task_id: int = 1, **overrides) -> TaskDefinition:
    fields = dict(
        id=task_id,
        name=f"task-{task_id}",
        cron_expr="*/5 * * * * *",
        url="http://example.test/ok",
        method="GET",
        headers=None,
        body=None,
        timeout=10,
    )
    fields.update(overrides)
    return TaskDefinition(**fields)


@pytest.fixture
def make_definition():
    """Factory for immutable TaskDefinition snapshots."""
    return _build_definition


# ============== 执行记录 / HTTP Fixtures ==============

class RecordingSink:
    """In-memory execution record sink that tests can wait on."""

    def __init__(self):
        self.records: List[Tuple[int, str, str]] = []
        self._cond = threading.Condition()

    def append(self, task_id: int, status_text: str, response_body: str = "") -> None:
        with self._cond:
            self.records.append((task_id, status_text, response_body))
            self._cond.notify_all()

    def wait_for(self, count: int, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        with self._cond:
            while len(self.records) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True


class FakeServer:
    """Routes requests by URL path for httpx.MockTransport."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {
            "/ok": lambda request: httpx.Response(200, content=b'{"ok":true}'),
        }
        self.requests: List[httpx.Request] = []
        self._lock = threading.Lock()

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, content=b"not found")
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def last_request(self) -> Optional[httpx.Request]:
        with self._lock:
            return self.requests[-1] if self.requests else None


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


# ============== 应用 Fixtures ==============

@pytest.fixture(scope="function")
def test_app(session_factory, fake_server):
    """应用实例：测试数据库 + 模拟 HTTP 传输层"""
    return create_app(
        session_factory=session_factory,
        init_database=None,
        transport=fake_server.transport,
    )


@pytest.fixture(scope="function")
def client(test_app, db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    test_app.dependency_overrides[get_db] = override_get_db
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()


@pytest.fixture
def runtime(client):
    """The TaskRuntime owned by the running test app."""
    return client.app.state.runtime
