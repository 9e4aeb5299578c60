"""
Transaction plumbing shared by the service classes.

Every public service operation is wrapped with ``@transactional``:

- the outermost call commits on ``Ok`` and rolls back on ``Err`` or on any
  exception; nested calls (the billing engine creating a recurring work
  order) join the outer transaction and leave the commit to it;
- a stale optimistic-lock write (``StaleDataError``) is rolled back and
  reported as ``Err(CONFLICT)`` so the caller can re-read and retry;
- callbacks registered with ``after_commit`` run only once the outermost
  transaction has committed. They are best-effort side effects
  (notifications): a failing callback is logged and never undoes the commit.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from operaciones.utils.result import Err, ServiceError

logger = logging.getLogger(__name__)

_DEPTH_KEY = "operaciones.tx_depth"
_HOOKS_KEY = "operaciones.after_commit"

F = TypeVar("F", bound=Callable[..., Any])


def after_commit(db: Session, callback: Callable[[], None]) -> None:
    """Queue *callback* to run after the current transaction commits."""
    db.info.setdefault(_HOOKS_KEY, []).append(callback)


def _discard_hooks(db: Session) -> None:
    db.info.pop(_HOOKS_KEY, None)


def _run_hooks(db: Session) -> None:
    hooks: list[Callable[[], None]] = db.info.pop(_HOOKS_KEY, [])
    for hook in hooks:
        try:
            hook()
        except Exception:
            logger.warning("after_commit hook %r failed", hook, exc_info=True)


def transactional(method: F) -> F:
    """Run a service method as one atomic unit against ``self.db``."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        db: Session = self.db
        depth: int = db.info.get(_DEPTH_KEY, 0)
        db.info[_DEPTH_KEY] = depth + 1
        try:
            result = method(self, *args, **kwargs)
            if depth == 0:
                if isinstance(result, Err):
                    db.rollback()
                    _discard_hooks(db)
                else:
                    db.commit()
        except StaleDataError as exc:
            if depth > 0:
                raise
            db.rollback()
            _discard_hooks(db)
            logger.info("%s: concurrent modification detected: %s", method.__name__, exc)
            return Err(
                ServiceError.conflict(
                    "El registro fue modificado por otra operación; "
                    "vuelva a consultarlo y reintente."
                )
            )
        except Exception:
            if depth == 0:
                db.rollback()
                _discard_hooks(db)
            raise
        finally:
            db.info[_DEPTH_KEY] = depth

        if depth == 0 and not isinstance(result, Err):
            _run_hooks(db)
        return result

    return wrapper  # type: ignore[return-value]


def lock_by_id(db: Session, model: type, entity_id: Any):
    """Load one row with ``SELECT ... FOR UPDATE``, refreshing the identity map.

    Pending changes are flushed first; ``populate_existing`` would otherwise
    overwrite them with the stored row.
    """
    db.flush()
    return (
        db.query(model)
        .filter(model.id == entity_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
