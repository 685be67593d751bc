"""
MCP Tools module for NoteVault MCP Server.

Contains the tool definitions and the MCP server wiring (list_tools and call_tool).
"""

from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from .handlers import SYNC_OPERATIONS, NoteHandlers

SERVER_NAME = "notevault"

_IDENTIFIER = {
    "type": "string",
    "description": "Note ID (e.g. 'note-1718000000000') or search text matching a single note",
}
_CONFIRM = {
    "type": "boolean",
    "description": "Set to true to apply the change; otherwise a preview is returned",
    "default": False,
}
_TAGS = {"type": "array", "items": {"type": "string"}}

TOOLS = [
    Tool(
        name="add_note",
        description="Save a new note. Related notes are linked automatically by shared tags and project.",
        inputSchema={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Note title (single line)"},
                "content": {"type": "string", "description": "Note body (Markdown)"},
                "tags": {**_TAGS, "description": "Tags for categorization"},
                "project": {"type": "string", "description": "Project this note belongs to"},
                "category": {"type": "string", "description": "Category (e.g. idea, meeting, research)"},
            },
            "required": ["title", "content"],
        },
    ),
    Tool(
        name="search_notes",
        description="Search notes by title, content, tags, project or category. Title matches rank first.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Text to search for (case-insensitive)"},
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="list_notes",
        description="List saved notes, newest first.",
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {"type": "integer", "description": "Maximum number of notes to show", "minimum": 1},
            },
        },
    ),
    Tool(
        name="update_note",
        description="Update an existing note. Returns a preview unless confirm=true.",
        inputSchema={
            "type": "object",
            "properties": {
                "identifier": _IDENTIFIER,
                "title": {"type": "string", "description": "New title"},
                "content": {"type": "string", "description": "New content (replaces the old content)"},
                "tags": {**_TAGS, "description": "Replace all tags"},
                "add_tags": {**_TAGS, "description": "Tags to add"},
                "remove_tags": {**_TAGS, "description": "Tags to remove"},
                "project": {"type": "string", "description": "New project (empty string clears it)"},
                "category": {"type": "string", "description": "New category (empty string clears it)"},
                "confirm": _CONFIRM,
            },
            "required": ["identifier"],
        },
    ),
    Tool(
        name="delete_note",
        description="Delete a note. Returns a preview unless confirm=true.",
        inputSchema={
            "type": "object",
            "properties": {
                "identifier": _IDENTIFIER,
                "confirm": _CONFIRM,
            },
            "required": ["identifier"],
        },
    ),
    Tool(
        name="related_notes",
        description="Show scored connections, possible backlinks and suggested links for a note.",
        inputSchema={
            "type": "object",
            "properties": {
                "identifier": _IDENTIFIER,
                "limit": {"type": "integer", "description": "Maximum related notes (default: 10)", "default": 10},
            },
            "required": ["identifier"],
        },
    ),
    Tool(
        name="sync_notes",
        description="Synchronize the notes repository with its Git remote.",
        inputSchema={
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "enum": list(SYNC_OPERATIONS),
                    "description": "Sync operation to run (default: full)",
                    "default": "full",
                },
                "message": {"type": "string", "description": "Commit message for commit, full and batch"},
                "identifier": {**_IDENTIFIER, "description": "Note to save and push (save-and-push only)"},
                "force": {"type": "boolean", "description": "Smart sync: sync even when nothing changed", "default": False},
            },
        },
    ),
]


def create_server(handlers: NoteHandlers) -> Server:
    """Build the MCP server exposing the note tools."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        output = await handlers.dispatch(name, arguments)
        return [TextContent(type="text", text=output)]

    return server
