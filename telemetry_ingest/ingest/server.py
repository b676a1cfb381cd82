"""
TCP ingest server.

Each accepted connection runs in its own asyncio task:

    read -> frame -> decode -> store -> reply -> read ...

Frames on one connection are handled strictly in order and every frame gets
exactly one reply. Processing failures become error replies and leave the
connection open; only socket read/write failures end it.
"""
import asyncio
import logging
from typing import Optional, Set

from telemetry_ingest import ledger
from telemetry_ingest.db import Database
from telemetry_ingest.errors import CodecError, PoolError, StoreError
from telemetry_ingest.ingest import response
from telemetry_ingest.ingest.codec import decode_message
from telemetry_ingest.ingest.framing import Frame, FrameTooLarge, MessageFramer
from telemetry_ingest.schemas import Response

logger = logging.getLogger(__name__)


class IngestServer:
    """
    Accepts machine connections and stores what they send.

    The database is handed in at construction and shared by every
    connection task; nothing else is shared between connections. At most
    `max_connections` connections are served at once, further ones get a
    single "server busy" reply and are closed.
    """

    def __init__(
        self,
        database: Database,
        host: str = "127.0.0.1",
        port: int = 8000,
        max_connections: int = 100,
        read_buffer_size: int = 1024,
        max_message_size: int = 64 * 1024,
    ):
        self.database = database
        self.host = host
        self.requested_port = port
        self.max_connections = max_connections
        self.read_buffer_size = read_buffer_size
        self.max_message_size = max_message_size

        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: Set[asyncio.StreamWriter] = set()
        self._active = 0

    @classmethod
    def from_config(cls, config, database: Database) -> "IngestServer":
        return cls(
            database,
            host=config.INGEST_HOST,
            port=config.INGEST_PORT,
            max_connections=config.MAX_CONNECTIONS,
            read_buffer_size=config.READ_BUFFER_SIZE,
            max_message_size=config.MAX_MESSAGE_BYTES,
        )

    @property
    def active_connections(self) -> int:
        return self._active

    @property
    def port(self) -> int:
        """Bound port; differs from the requested one when that was 0."""
        if self._server is None or not self._server.sockets:
            return self.requested_port
        return self._server.sockets[0].getsockname()[1]

    async def start(self):
        self._server = await asyncio.start_server(
            self._handle_connection, self.host, self.requested_port)
        logger.info("Ingest server listening on %s:%d", self.host, self.port)

    async def serve_forever(self):
        if self._server is None:
            await self.start()
        async with self._server:
            await self._server.serve_forever()

    async def close(self):
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Ingest server stopped")

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        peer = writer.get_extra_info("peername")

        if self._active >= self.max_connections:
            logger.warning("Refusing connection from %s: %d connections active",
                           peer, self._active)
            await self._reject(writer, response.error(response.SERVER_BUSY))
            return

        self._active += 1
        self._writers.add(writer)
        logger.info("New connection from %s", peer)
        try:
            await self._serve(reader, writer, peer)
        finally:
            self._active -= 1
            self._writers.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug("Error while closing %s: %s", peer, e)
            logger.debug("Connection from %s closed", peer)

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, peer):
        framer = MessageFramer(self.max_message_size)

        while True:
            try:
                data = await reader.read(self.read_buffer_size)
            except (ConnectionError, OSError) as e:
                logger.error("Failed to read from %s: %s", peer, e)
                return

            if not data:
                # peer closed its side; answer a final unterminated message
                last = framer.flush()
                if last is not None:
                    await self._reply(writer, await self.process_frame(last), peer)
                logger.info("Client %s disconnected", peer)
                return

            for frame in framer.feed(data):
                reply = await self.process_frame(frame)
                if not await self._reply(writer, reply, peer):
                    return

    async def process_frame(self, frame: Frame) -> Response:
        """Turn one frame into exactly one reply."""
        if isinstance(frame, FrameTooLarge):
            logger.warning("Dropped message larger than %d bytes", frame.limit)
            return response.error(f"Message too large: limit is {frame.limit} bytes")

        try:
            decoded = decode_message(frame)
        except CodecError as e:
            logger.warning("Failed to decode message: %s", e)
            return response.error(str(e))

        event = decoded.event
        logger.debug("Processing message from machine: %s", event.machine_id)
        try:
            stored = await asyncio.to_thread(
                ledger.store_log_with_metrics,
                self.database,
                event.machine_id,
                decoded.raw_text,
                event.metrics,
            )
        except PoolError:
            return response.error(response.POOL_EXHAUSTED)
        except StoreError:
            return response.error(response.STORE_FAILED)

        logger.info("Stored log %d and %d metrics from %s",
                    stored.log_id, stored.metric_count, event.machine_id)
        return response.success()

    async def _reply(self, writer: asyncio.StreamWriter, reply: Response, peer) -> bool:
        try:
            writer.write(response.encode_response(reply))
            await writer.drain()
        except (ConnectionError, OSError) as e:
            logger.error("Failed to send response to %s: %s", peer, e)
            return False
        return True

    async def _reject(self, writer: asyncio.StreamWriter, reply: Response):
        try:
            writer.write(response.encode_response(reply))
            await writer.drain()
        except (ConnectionError, OSError) as e:
            logger.debug("Failed to send busy reply: %s", e)
        finally:
            writer.close()
