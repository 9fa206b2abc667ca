"""Shared fixtures: in-memory asyncpg pool, fake S3 client, test app.

FakeConnection answers statements from a script keyed by SQL fragment and
records everything it was asked to run, so storage tests assert on the
statements and their parameters.
"""

import re
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from rpg_admin import assets, auth, storage
from rpg_admin.app import create_app
from rpg_admin.assets import AssetRegistry
from rpg_admin.config import Settings

_DEFAULTS = {"fetch": [], "fetchrow": None, "fetchval": None, "execute": "OK"}


def _squash(sql: str) -> str:
    return re.sub(r"\s+", " ", sql).strip()


class FakeConnection:
    """Scripted stand-in for asyncpg.Connection."""

    def __init__(self):
        self.calls: list[tuple[str, str, tuple]] = []
        self.events: list[str] = []
        self._scripts: dict[str, list] = {}

    def on(self, fragment: str, *results):
        """Answer statements containing `fragment` with `results` in order.

        The last result repeats once the others are used up. A callable
        result is called with the statement's parameters. The longest
        matching fragment wins.
        """
        self._scripts[fragment] = list(results)
        return self

    def _answer(self, method: str, sql: str, args: tuple):
        sql = _squash(sql)
        self.calls.append((method, sql, args))
        matches = [f for f in self._scripts if f in sql]
        if not matches:
            return _DEFAULTS[method]
        queue = self._scripts[max(matches, key=len)]
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(*args)
        return result

    async def fetch(self, sql, *args):
        return self._answer("fetch", sql, args)

    async def fetchrow(self, sql, *args):
        return self._answer("fetchrow", sql, args)

    async def fetchval(self, sql, *args):
        return self._answer("fetchval", sql, args)

    async def execute(self, sql, *args):
        return self._answer("execute", sql, args)

    @asynccontextmanager
    async def transaction(self):
        self.events.append("begin")
        try:
            yield
        except BaseException:
            self.events.append("rollback")
            raise
        self.events.append("commit")

    # ── Inspection helpers ──

    def statements(self, fragment: str = "") -> list[tuple[str, tuple]]:
        """(sql, args) of every recorded statement containing `fragment`."""
        return [(sql, args) for _, sql, args in self.calls if fragment in sql]

    def ran(self, fragment: str) -> bool:
        return bool(self.statements(fragment))


class FakePool:
    def __init__(self, conn: FakeConnection):
        self.conn = conn
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self):
        self.closed = True


class FakeS3:
    """Minimal boto3 S3 client: listing, put and presigning."""

    def __init__(self, keys: list[str] | None = None, fail_sign: bool = False):
        self.objects: dict[str, bytes] = {k: b"" for k in keys or []}
        self.puts: list[dict] = []
        self.fail_sign = fail_sign

    def get_paginator(self, name: str):
        assert name == "list_objects_v2"
        return self

    def paginate(self, Bucket: str, Prefix: str = ""):
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        # two pages to exercise pagination
        half = len(keys) // 2
        for chunk in (keys[:half], keys[half:]):
            yield {"Contents": [{"Key": k} for k in chunk]} if chunk else {}

    def put_object(self, **kwargs):
        self.puts.append(kwargs)
        self.objects[kwargs["Key"]] = kwargs["Body"]
        return {}

    def generate_presigned_url(self, operation: str, Params: dict, ExpiresIn: int):
        if self.fail_sign:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)
        return f"https://signed.example/{Params['Key']}?ttl={ExpiresIn}"


@pytest.fixture(autouse=True)
def reset_singletons():
    """Every test starts with no pool, no object store and no key set."""
    storage.init_pool(None)
    assets.init_registry(None)
    auth.init_auth(None)
    yield
    storage.init_pool(None)
    assets.init_registry(None)
    auth.init_auth(None)


@pytest.fixture
def db() -> FakeConnection:
    conn = FakeConnection()
    storage.init_pool(FakePool(conn))
    return conn


@pytest.fixture
def s3() -> FakeS3:
    client = FakeS3()
    assets.init_registry(AssetRegistry(bucket="test-bucket", client=client))
    return client


@pytest.fixture
def tool_dir(tmp_path: Path) -> Path:
    (tmp_path / "login.html").write_text("<html>login</html>")
    (tmp_path / "index.html").write_text("<html>dashboard</html>")
    (tmp_path / "css").mkdir()
    (tmp_path / "css" / "style.css").write_text("body {}")
    (tmp_path / "app.js").write_text("console.log(1)")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG")
    return tmp_path


@pytest.fixture
def settings(tool_dir: Path) -> Settings:
    return Settings(
        cognito_region="eu-central-1",
        cognito_user_pool="eu-central-1_test",
        s3_bucket="test-bucket",
        db_password="secret",
        openai_api_key="sk-test",
        openai_url="https://llm.example/v1/responses",
        tool_dir=tool_dir,
    )


@pytest.fixture
def client(settings: Settings) -> TestClient:
    """Unauthenticated client against an app that opens no connections."""
    return TestClient(create_app(settings, connect=False))


@pytest.fixture
def api(client: TestClient, monkeypatch) -> TestClient:
    """Client whose every request passes the bearer check as 'tester'."""
    monkeypatch.setattr(auth, "verify_token", lambda token: "tester" if token == "good" else None)
    client.headers["Authorization"] = "Bearer good"
    return client
