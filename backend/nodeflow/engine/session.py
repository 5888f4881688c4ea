"""Execution session manager: tracks active runs and their cancellation tokens."""
from .context import CancellationToken
from .store import WorkflowStore


class SessionBusyError(RuntimeError):
    pass


class ExecutionSession:
    def __init__(self, execution_id: str, session_id: str):
        self.execution_id = execution_id
        self.session_id = session_id
        self.cancel_token = CancellationToken()


_sessions: dict[str, ExecutionSession] = {}
_stores: dict[str, WorkflowStore] = {}


def create_session(execution_id: str, session_id: str) -> ExecutionSession:
    """Register a run; only one run may be in flight per workflow session."""
    for existing in _sessions.values():
        if existing.session_id == session_id:
            raise SessionBusyError(
                f"Session {session_id} already has a run in progress "
                f"({existing.execution_id})"
            )
    session = ExecutionSession(execution_id, session_id)
    _sessions[execution_id] = session
    return session


def get_session(execution_id: str) -> ExecutionSession | None:
    return _sessions.get(execution_id)


def remove_session(execution_id: str) -> None:
    _sessions.pop(execution_id, None)


def get_store(session_id: str) -> WorkflowStore:
    """The node-state store for a workflow session, created on first use."""
    store = _stores.get(session_id)
    if store is None:
        store = _stores[session_id] = WorkflowStore()
    return store


def drop_store(session_id: str) -> None:
    _stores.pop(session_id, None)
