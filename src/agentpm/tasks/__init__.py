"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TasksData, ...)
- task_repository.py: in-memory keyed storage
- task_validator.py: structural checks + status transition rules
- task_dependencies.py: dependency edges, cycle detection
- task_queries.py: filter/sort/paginate, ready tasks, next-task ranking
- task_migration.py: upgrades any payload to the current schema
- transaction_log.py: change list for one open transaction
- task_files.py: JSON file gateway with backup rotation
- task_manager.py: orchestrator wiring all of the above
"""
