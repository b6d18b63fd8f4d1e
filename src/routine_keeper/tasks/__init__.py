"""
Task subsystem.

Components:
- task_models.py: data structures (Task, RoutineList, TaskSchedule, SweepResult)
- refresh.py: pure refresh rules (initial schedule, done/undone toggle, due window)
- task_store.py: SQLite-backed storage + query/update helpers
- task_scheduler.py: single-shot reset sweep and its periodic driver
- task_api.py: create / toggle / remove operations used by the list API
"""
