"""
agentpm: file-backed task store for agent-driven project management.

Subpackages:
- tasks: task records, validation, dependency graph, queries, migration,
  transactions, JSON persistence and the TaskManager orchestrator
- operations: asyncio tracker for long-running work with progress/ETA
- core: ports (Protocols), event bus, AppState
- cli / connectors: composition root, slash commands, console
"""
