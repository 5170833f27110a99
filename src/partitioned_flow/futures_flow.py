from concurrent.futures import ThreadPoolExecutor, FIRST_EXCEPTION, wait
import logging

from partitioned_flow.partitioned_flow import (
    ConcurrencyError,
    FlowError,
    run_partition,
    _check_positive,
)

logger = logging.getLogger(__name__)


def fork_join_with_executor(partitions, transform, num_computing_threads):
    """Same contract as fork_join_with_threads, but using a ThreadPoolExecutor.

    On the first failure the pending partitions are cancelled.
    """
    _check_positive("num_computing_threads", num_computing_threads)
    if not partitions:
        return []

    executor = ThreadPoolExecutor(max_workers=num_computing_threads)
    try:
        futures = [
            executor.submit(run_partition, this_partition, transform)
            for this_partition in partitions
        ]
    except RuntimeError as error:
        executor.shutdown(wait=True, cancel_futures=True)
        raise ConcurrencyError("Unable to submit the partitions") from error

    done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
    executor.shutdown(wait=True, cancel_futures=bool(not_done))

    for future in futures:
        if future.cancelled() or future.exception() is None:
            continue
        exception = future.exception()
        if isinstance(exception, FlowError):
            raise exception
        raise ConcurrencyError(f"A worker failed: {exception!r}") from exception

    logger.debug("%d partitions processed by the executor", len(futures))
    return [future.result() for future in futures]
