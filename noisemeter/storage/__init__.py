"""Session persistence."""

from .session_store import SessionStore, session_to_dict, session_from_dict

__all__ = [
    "SessionStore",
    "session_to_dict",
    "session_from_dict",
]
