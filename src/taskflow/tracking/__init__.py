"""
Time tracking.

Components:
- session_machine.py: idle/running/paused timer that saves TimeLogs
- time_logs.py: live feed of saved logs + duration formatting
"""
