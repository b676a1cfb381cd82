"""Shared test fixtures: a file-backed SQLite store and a running ingest server."""

import asyncio
import json
from pathlib import Path

import pytest

from telemetry_ingest.db import Database
from telemetry_ingest.ingest.server import IngestServer


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """Provide a temporary SQLite database URL."""
    return f"sqlite:///{tmp_path / 'ingest.db'}"


@pytest.fixture
def make_database(db_url: str):
    """Factory fixture for pools with custom size/timeout, disposed after the test."""
    created = []

    def _make(pool_size: int = 5, pool_timeout: float = 3.0) -> Database:
        database = Database(
            db_url,
            pool_size=pool_size,
            pool_timeout=pool_timeout,
            connect_args={"check_same_thread": False},
        )
        database.init_db()
        created.append(database)
        return database

    yield _make

    for database in created:
        database.dispose()


@pytest.fixture
def database(make_database) -> Database:
    return make_database()


@pytest.fixture
async def start_server():
    """Factory fixture starting an IngestServer on a free port; closed after the test."""
    servers = []

    async def _start(database: Database, **kwargs) -> IngestServer:
        server = IngestServer(database, host="127.0.0.1", port=0, **kwargs)
        await server.start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        await server.close()


@pytest.fixture
async def ingest_server(start_server, database: Database) -> IngestServer:
    return await start_server(database)


class IngestClient:
    """Line-oriented test client for the ingest protocol."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer

    @classmethod
    async def connect(cls, port: int) -> "IngestClient":
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        return cls(reader, writer)

    async def send_raw(self, data: bytes):
        self.writer.write(data)
        await self.writer.drain()

    async def read_reply(self) -> dict:
        line = await asyncio.wait_for(self.reader.readline(), timeout=10)
        assert line.endswith(b"\n"), f"incomplete reply: {line!r}"
        return json.loads(line)

    async def request(self, payload) -> dict:
        if not isinstance(payload, bytes):
            payload = json.dumps(payload).encode()
        await self.send_raw(payload + b"\n")
        return await self.read_reply()

    async def close(self):
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass


@pytest.fixture
async def client_factory():
    """Factory fixture returning connected IngestClients, all closed after the test."""
    clients = []

    async def _connect(port: int) -> IngestClient:
        client = await IngestClient.connect(port)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        await client.close()
