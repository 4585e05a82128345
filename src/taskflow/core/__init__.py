"""
Core plumbing.

Components:
- ports.py: Protocols for the remote collection, attachment storage, auth user
- errors.py: error taxonomy
- live.py: full-snapshot subscription holder shared by the live views
- session.py: per-user session (created on sign-in, closed on sign-out)
- state.py: process-wide AppState
"""
