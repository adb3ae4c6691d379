"""Creator/updater stamping for audited models.

The acting user comes from the caller (request handler, script, test) through
``acting_as``. Stamping happens in a ``before_flush`` hook so that every row
written, including siblings renumbered as a side effect, carries it.
"""
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from category_tree.database import AuditMixin

logger = logging.getLogger(__name__)

_current_actor: ContextVar[Optional[int]] = ContextVar("category_tree_actor", default=None)


def current_actor() -> Optional[int]:
    return _current_actor.get()


@contextmanager
def acting_as(actor_id: Optional[int]):
    """Run a block of work on behalf of ``actor_id``"""
    token = _current_actor.set(actor_id)
    try:
        yield
    finally:
        _current_actor.reset(token)


@event.listens_for(Session, "before_flush")
def stamp_audit_columns(session, flush_context, instances):
    actor = _current_actor.get()
    for obj in session.new:
        if isinstance(obj, AuditMixin):
            obj.created_by = actor
            obj.updated_by = actor
    for obj in session.dirty:
        if isinstance(obj, AuditMixin) and session.is_modified(obj, include_collections=False):
            obj.updated_by = actor
