import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from telemetry_ingest.config import Config
from telemetry_ingest.db import Database
from telemetry_ingest.errors import ConfigError
from telemetry_ingest.ingest.server import IngestServer
from telemetry_ingest.routes import logs, metrics, statistics

logger = logging.getLogger(__name__)


def configure_logging(config: Config):
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def open_database(config: Config) -> Database:
    """Build the pool and make sure the store answers; raises ConfigError otherwise."""
    database = Database.from_config(config)
    database.check_connection()
    database.init_db()
    return database


def create_app(config: Optional[Config] = None, database: Optional[Database] = None,
               serve_ingest: bool = True) -> FastAPI:
    """
    Read-only query API over the ledger.

    With `serve_ingest` the TCP ingest server runs alongside the API for the
    lifetime of the application:

        uvicorn --factory telemetry_ingest.main:create_app
    """
    config = config or Config()
    if database is None:
        database = open_database(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not serve_ingest:
            yield
            return
        # startup: run the ingest server next to the API
        server = IngestServer.from_config(config, database)
        await server.start()
        task = asyncio.create_task(server.serve_forever())
        try:
            yield
        finally:
            # shutdown: stop accepting and cancel the serving task
            await server.close()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.info("Ingest server task cancelled")

    app = FastAPI(
        title="Machine Telemetry Ingest API",
        version="1.0.0",
        description="Read-only access to machine logs and metric readings received over TCP.",
        lifespan=lifespan,
    )
    app.state.database = database

    # Routers
    app.include_router(logs.router)
    app.include_router(metrics.router)
    app.include_router(statistics.router)

    @app.get("/")
    def root():
        return {"message": "Machine telemetry ingest service is up and running"}

    return app


async def serve(config: Config, database: Database):
    server = IngestServer.from_config(config, database)
    await server.start()
    try:
        await server.serve_forever()
    finally:
        await server.close()
        database.dispose()


def run():
    """Console entry point: serve the TCP ingest endpoint until interrupted."""
    try:
        config = Config()
        configure_logging(config)
        database = open_database(config)
    except ConfigError as e:
        logger.critical("Failed to start: %s", e)
        sys.exit(1)

    try:
        asyncio.run(serve(config, database))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    run()
