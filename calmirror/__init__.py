"""
Client-side consistency layer for mirrored calendars: optimistic event
mutations, classified retries and resumable onboarding sessions.
"""

__version__ = "0.1.0"
