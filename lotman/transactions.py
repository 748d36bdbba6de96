"""
Units of work under contention.

Every "read lot quantity → decide → write lot + movement + level" sequence
runs inside one transaction with the rows locked (select_for_update). When
two transactions collide the database answers with an OperationalError
(deadlock, lock timeout, "database is locked"); the whole unit of work is
then rolled back and replayed, a bounded number of times.

Usage:
    def work():
        lots = Lot.objects.select_for_update().filter(...)
        ...
        return movements

    movements = atomic_with_retry(work, label="deduct")
"""

import logging
import time

from django.db import DEFAULT_DB_ALIAS, OperationalError, transaction

from lotman.conf import lotman_settings
from lotman.exceptions import StoreContentionExceeded

logger = logging.getLogger('lotman')


def atomic_with_retry(func, *, using: str | None = None, retries: int | None = None,
                      label: str = 'unit_of_work', **context):
    """
    Run func() inside transaction.atomic(), replaying it on contention.

    Args:
        func: Zero-argument callable doing the reads and writes
        using: Database alias (None = default)
        retries: Max attempts (None = CONTENTION_MAX_RETRIES)
        label: Name used in logs and in the raised error
        **context: Extra fields for logs and the raised error

    Returns:
        Whatever func() returns

    Raises:
        StoreContentionExceeded: If every attempt hit an OperationalError
        Any other exception from func(), after rollback, unchanged
    """
    alias = using or DEFAULT_DB_ALIAS
    attempts = max(1, retries if retries is not None else lotman_settings.CONTENTION_MAX_RETRIES)
    backoff = lotman_settings.CONTENTION_BACKOFF_MS / 1000

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic(using=alias):
                return func()
        except OperationalError as exc:
            if attempt == attempts:
                logger.error(
                    "stock.contention.exceeded",
                    extra={"label": label, "attempts": attempts, "error": str(exc), **context},
                )
                raise StoreContentionExceeded(label=label, attempts=attempts, **context) from exc

            logger.warning(
                "stock.contention.retry",
                extra={"label": label, "attempt": attempt, "error": str(exc), **context},
            )
            if backoff:
                time.sleep(backoff * attempt)
