class SessionStateError(Exception):
    """An operation was called in a session state that does not allow it."""
