"""Per-subject log context.

Everything logged inside ``bind_subject`` carries the subject id (and any
extra fields) without each call site repeating them. Bindings live in
contextvars, so each asyncio task keeps its own.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator

import structlog


@contextmanager
def bind_subject(subject_id: str, **fields: Any) -> Iterator[None]:
    """Bind ``subject_id`` and ``fields`` to every log event in the block."""
    with structlog.contextvars.bound_contextvars(subject_id=subject_id, **fields):
        yield


def current_context() -> Dict[str, Any]:
    """Fields currently bound for this task."""
    return structlog.contextvars.get_contextvars()
