"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Timespan, recipes, ScheduledInstance, errors)
- recipes.py: recipe evaluation against a window (evaluator registry)
- dependencies.py: leaves-first linearization and subset ordering of the DAG
- task_scheduler.py: conflict-free schedule + polling agenda notifier
- task_reducer.py: pure state transitions over the task store
- task_store.py: SQLite-backed persistence of task records
- task_api.py: small agenda helpers used by the rest of the app
"""
