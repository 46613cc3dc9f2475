# troop_app/services/transaction.py
"""
Transaction scope shared by the ledger-affecting services.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.monitoring import LedgerMonitoring
from troop_app.services.errors import LedgerError, TransactionFailure


@contextmanager
def ledger_transaction(
    session: Session,
    *,
    operation: str,
    organization_id: int,
    subject: str | None = None,
) -> Iterator[Session]:
    """
    Run a read-decide-write sequence as one transaction.

    Commits when the block completes. Any exception rolls the whole transaction
    back; database errors are logged with tenant, operation and subject and
    re-raised as ``TransactionFailure`` so no SQL detail reaches callers.
    """
    started = time.perf_counter()
    status = "error"
    try:
        yield session
        session.commit()
        status = "ok"
    except LedgerError:
        session.rollback()
        status = "rejected"
        raise
    except SQLAlchemyError as e:
        session.rollback()
        current_app.logger.error(
            f"{operation} failed for organization {organization_id}"
            f"{f' ({subject})' if subject else ''}: {str(e)}",
            exc_info=True,
        )
        raise TransactionFailure() from e
    except Exception:
        session.rollback()
        current_app.logger.error(
            f"Unexpected error during {operation} for organization {organization_id}"
            f"{f' ({subject})' if subject else ''}",
            exc_info=True,
        )
        raise
    finally:
        LedgerMonitoring.LEDGER_OPERATION_LATENCY.labels(operation=operation, status=status).observe(
            time.perf_counter() - started
        )
