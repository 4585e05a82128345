"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskDraft, TimeLog, enums) + record conversion
- task_store.py: live, ordered mirror of the user's tasks fed by remote snapshots
- task_views.py: filtered/searched subsets, statistics, project suggestions
- attachments.py: upload-then-create pipeline for tasks with a file
"""
