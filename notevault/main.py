"""
Main entry point for NoteVault MCP Server.

This module provides the main() function and server initialization.
"""

import asyncio

import structlog
from mcp.server.stdio import stdio_server

from .config import Settings
from .handlers import NoteHandlers
from .json_store import JsonNoteStore
from .logging import configure_logging
from .tools import create_server

logger = structlog.get_logger(__name__)


def build_handlers(settings: Settings) -> NoteHandlers:
    """Create the tool handlers for the configured backend.

    The JSON backend needs its data directory up front; failing to create it
    stops the server. The vault backend is resolved lazily so a missing vault
    path is reported by each tool call.
    """
    if settings.storage_backend == "json":
        store = JsonNoteStore.from_settings(settings)
        store.ensure_structure()
        return NoteHandlers(settings, store=store)
    return NoteHandlers(settings)


def main():
    """Main entry point."""
    settings = Settings()
    configure_logging(settings.log_level)
    handlers = build_handlers(settings)
    server = create_server(handlers)
    logger.info(
        "server_starting",
        backend=settings.storage_backend,
        vault=str(settings.vault_path) if settings.vault_path else None,
        auto_sync=settings.auto_sync_on_save,
    )

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    asyncio.run(run())


if __name__ == "__main__":
    main()
