"""Helpers for running Firestore transactions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from matchday.errors import ConflictError

from .constants import TRANSACTION_MAX_ATTEMPTS

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Raised as ValueError by the Firestore client once every attempt was aborted.
_EXHAUSTED_PREFIX = "Failed to commit transaction"


def run_transaction(
    db: Client,
    func: Callable[..., T],
    *args: Any,
    max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    **kwargs: Any,
) -> T:
    """Run `func(transaction, *args, **kwargs)` as a retried Firestore transaction.

    Reads inside `func` must go through the transaction. The client re-runs
    `func` on contention; once `max_attempts` is exhausted the failure is
    reported as a ConflictError.
    """
    transaction: Transaction = db.transaction(max_attempts=max_attempts)
    transactional = firestore.transactional(func)
    try:
        return transactional(transaction, *args, **kwargs)
    except google_exceptions.Aborted as e:
        logger.warning(f"Transaction aborted after contention: {e}")
        raise ConflictError() from e
    except ValueError as e:
        if str(e).startswith(_EXHAUSTED_PREFIX):
            logger.warning(f"Transaction gave up after {max_attempts} attempts.")
            raise ConflictError() from e
        raise
