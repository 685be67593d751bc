# NoteVault MCP Server
#
# Modular package structure:
# - config.py: Settings loaded from the environment and .env
# - logging.py: structlog configuration
# - utils.py: Exceptions, compiled patterns, and input validation
# - models.py: Pydantic models (Note, RelatedNote, SyncResult, git results)
# - markdown.py: Markdown document codec for vault notes
# - linking.py: Related-note scoring and link suggestions
# - search.py: Free-text note search
# - vault.py: Markdown vault store
# - json_store.py: Flat JSON file store
# - git.py: git command runner and repository operations
# - sync.py: Vault/git synchronization orchestration
# - handlers.py: Tool handlers producing text responses
# - tools.py: MCP tool definitions and server factory
# - main.py: Entry point and server initialization
