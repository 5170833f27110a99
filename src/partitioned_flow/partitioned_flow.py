# Copyright (c) 2025 Jose Blanca
# Licensed under the MIT License. See LICENSE file for details.

from typing import Callable, Hashable, Iterable, Iterator, TypeVar
from operator import itemgetter
import heapq
import logging
import numbers
import queue
import threading

logger = logging.getLogger(__name__)

DEFAULT_NUM_COMPUTING_THREADS = 4
DEFAULT_BUCKET_SIZE = 8

T = TypeVar("T")
R = TypeVar("R")


class FlowError(Exception):
    pass


class InputError(FlowError, ValueError):
    pass


class TransformError(FlowError):
    def __init__(self, item, index):
        super().__init__(f"Transform failed for item {item!r} at position {index}")
        self.item = item
        self.index = index


class ConcurrencyError(FlowError):
    pass


def check_items(items: Iterable) -> list:
    """Materialize the items and check that all of them are non-negative integers.

    Raises InputError before any work is done if an item is not valid.
    """
    items = list(items)
    for idx, item in enumerate(items):
        if isinstance(item, bool) or not isinstance(item, numbers.Integral):
            raise InputError(
                f"Only non-negative integers are allowed, got {item!r} at position {idx}"
            )
        if item < 0:
            raise InputError(f"Negative item {item} found at position {idx}")
    return items


def apply_transform(transform: Callable[[T], R], item: T, index: int) -> R:
    try:
        return transform(item)
    except TransformError:
        raise
    except Exception as error:
        raise TransformError(item, index) from error


def _check_positive(name, value):
    if value < 1:
        raise ValueError(f"{name} should be at least 1, but it is {value}")


class Partition:
    def __init__(self, key):
        self.key = key
        self.items = []

    def __len__(self):
        return len(self.items)

    def __repr__(self):
        return f"Partition(key={self.key!r}, num_items={len(self.items)})"


def bucket_key(bucket_size: int) -> Callable[[tuple[int, object]], int]:
    """Key that groups consecutive positions into buckets of bucket_size items."""
    _check_positive("bucket_size", bucket_size)

    def key(indexed_item):
        return indexed_item[0] // bucket_size

    return key


def label_key(indexed_item):
    # indexed_item is (index, (item, label))
    return indexed_item[1][1]


def partition(
    indexed_items: Iterable[tuple[int, T]],
    key_fn: Callable[[tuple[int, T]], Hashable],
) -> list[Partition]:
    """
    Split (index, item) pairs into partitions that share the same key.

    Items with equal keys always end up in the same partition and, inside a
    partition, keep the order in which they were found. The partitions are
    returned in the order in which their keys first appear.
    """
    partitions = {}
    for indexed_item in indexed_items:
        key = key_fn(indexed_item)
        try:
            this_partition = partitions[key]
        except KeyError:
            this_partition = Partition(key)
            partitions[key] = this_partition
        this_partition.items.append(indexed_item)
    return list(partitions.values())


def run_partition(
    partition: Partition, transform: Callable[[T], R]
) -> list[tuple[int, R]]:
    accumulator = []
    append = accumulator.append
    for idx, item in partition.items:
        append((idx, apply_transform(transform, item, idx)))
    return accumulator


class _ClosedThread:
    pass


CLOSED_THREAD = _ClosedThread()


class _WorkerError:
    def __init__(self, exc, idx):
        self.exc = exc
        self.idx = idx


class _PartitionDispenser(Iterator):
    def __init__(self, partitions):
        self._it = enumerate(partitions)
        self._lock = threading.Lock()
        self._closed = False

    def __next__(self):
        with self._lock:
            if self._closed:
                raise StopIteration
            return next(self._it)

    def close(self):
        with self._lock:
            self._closed = True


def _run_partitions_from_dispenser(partition_dispenser, results_queue, transform):
    put = results_queue.put
    idx = None
    try:
        for idx, this_partition in partition_dispenser:
            put((idx, run_partition(this_partition, transform)))
    except Exception as exception:
        # the remaining threads should not start new partitions
        partition_dispenser.close()
        put(_WorkerError(exception, idx))
    finally:
        put(CLOSED_THREAD)


def _as_flow_error(exception):
    if isinstance(exception, FlowError):
        return exception
    error = ConcurrencyError(f"A computing thread failed: {exception!r}")
    error.__cause__ = exception
    return error


def fork_join_with_threads(
    partitions: list[Partition],
    transform: Callable[[T], R],
    num_computing_threads: int,
) -> list[list[tuple[int, R]]]:
    """
    Process every partition in a pool of threads and wait for all of them.

    The accumulators are returned in the same order as the partitions. If any
    partition fails, the results of the rest are discarded and the error of
    the first failing partition is raised, whatever the thread that found it
    first.
    """
    _check_positive("num_computing_threads", num_computing_threads)
    partition_dispenser = _PartitionDispenser(partitions)
    results_queue = queue.Queue()

    errors = []
    computing_threads = []
    for idx in range(min(num_computing_threads, len(partitions))):
        thread = threading.Thread(
            target=_run_partitions_from_dispenser,
            kwargs={
                "partition_dispenser": partition_dispenser,
                "results_queue": results_queue,
                "transform": transform,
            },
            name=f"comp_thread_{idx}",
        )
        try:
            thread.start()
        except RuntimeError as error:
            partition_dispenser.close()
            start_error = ConcurrencyError(f"Unable to start computing thread {idx}")
            start_error.__cause__ = error
            errors.append((len(partitions), start_error))
            break
        computing_threads.append(thread)

    accumulators = [None] * len(partitions)
    num_closed_threads = 0
    while num_closed_threads < len(computing_threads):
        result = results_queue.get()
        if result is CLOSED_THREAD:
            num_closed_threads += 1
        elif isinstance(result, _WorkerError):
            idx = len(partitions) if result.idx is None else result.idx
            errors.append((idx, result.exc))
        else:
            idx, accumulator = result
            accumulators[idx] = accumulator

    for thread in computing_threads:
        thread.join()

    if errors:
        # partitions are dispensed in order, so every partition before a
        # failing one has been run to completion or to its own failure
        _, first_error = min(errors, key=itemgetter(0))
        raise _as_flow_error(first_error)
    logger.debug(
        "%d partitions processed by %d threads", len(partitions), len(computing_threads)
    )
    return accumulators


class OrderedMerge:
    """Rebuild the input order from accumulators sorted by original position."""

    def merge(self, accumulators, total_count):
        merged = heapq.merge(*accumulators, key=itemgetter(0))
        result = [output for _, output in merged]
        if len(result) != total_count:
            raise ConcurrencyError(
                f"{total_count} items were expected after merging, but {len(result)} were found"
            )
        return result


class GroupMerge:
    """Turn (label, accumulator) pairs, one per label partition, into a dict."""

    def merge(self, labelled_accumulators):
        groups = {}
        for label, accumulator in labelled_accumulators:
            if not accumulator:
                continue
            if label in groups:
                raise ConcurrencyError(f"Label {label!r} found in more than one partition")
            groups[label] = [item for _, item in accumulator]
        return groups


def _item_from_labelled(labelled_item):
    item, _ = labelled_item
    return item


def _fork_join_or_default(fork_join):
    return fork_join_with_threads if fork_join is None else fork_join


def flow_map(
    transform: Callable[[T], R],
    items: Iterable[T],
    num_computing_threads: int = DEFAULT_NUM_COMPUTING_THREADS,
    bucket_size: int = DEFAULT_BUCKET_SIZE,
    fork_join=None,
) -> list[R]:
    """
    Apply a function to every item in parallel, preserving the input order.

    The items are split in partitions of ``bucket_size`` consecutive items,
    every partition is transformed by one of the computing threads and,
    once all threads are done, the partial results are merged back using the
    original position of every item.

    Parameters
    ----------
    transform
        Callable applied to each item. It must be safe to call from multiple
        threads concurrently.
    items
        Finite iterable of non-negative integers.
    num_computing_threads
        Number of threads used to process the partitions.
    bucket_size
        Number of consecutive items put in each partition. It only affects
        the load balance, never the result.
    fork_join
        Callable used to run the partitions, ``fork_join_with_threads`` by
        default.

    Returns
    -------
    list[R]
        ``transform(item)`` for every item, in the same order as ``items``.

    Raises
    ------
    InputError
        If an item is not a non-negative integer.
    TransformError
        If ``transform`` fails for any item. No partial result is returned.

    Examples
    --------
    >>> from partitioned_flow import flow_map
    >>> flow_map(lambda x: x * x, range(6), num_computing_threads=2, bucket_size=2)
    [0, 1, 4, 9, 16, 25]
    """
    items = check_items(items)
    _check_positive("num_computing_threads", num_computing_threads)
    partitions = partition(enumerate(items), bucket_key(bucket_size))
    logger.debug("%d items split in %d partitions", len(items), len(partitions))

    fork_join = _fork_join_or_default(fork_join)
    accumulators = fork_join(partitions, transform, num_computing_threads)
    return OrderedMerge().merge(accumulators, len(items))


def flow_reduce(
    transform: Callable[[T], tuple[T, Hashable]],
    items: Iterable[T],
    num_computing_threads: int = DEFAULT_NUM_COMPUTING_THREADS,
    bucket_size: int = DEFAULT_BUCKET_SIZE,
    fork_join=None,
) -> dict:
    """
    Group the items by the label given by ``transform``, in parallel.

    ``transform`` should return an ``(item, label)`` tuple. It is called once
    per item in a partitioned map, then the labelled items are partitioned by
    label so each partition holds a single group that keeps the input order.

    Returns
    -------
    dict
        label -> list of the items with that label, in input order.

    Examples
    --------
    >>> from partitioned_flow import flow_reduce
    >>> flow_reduce(lambda x: (x, x % 2), range(5))
    {0: [0, 2, 4], 1: [1, 3]}
    """
    fork_join = _fork_join_or_default(fork_join)
    labelled_items = flow_map(
        transform,
        items,
        num_computing_threads=num_computing_threads,
        bucket_size=bucket_size,
        fork_join=fork_join,
    )
    partitions = partition(enumerate(labelled_items), label_key)
    logger.debug("%d labels found", len(partitions))

    accumulators = fork_join(partitions, _item_from_labelled, num_computing_threads)
    labels = [this_partition.key for this_partition in partitions]
    return GroupMerge().merge(zip(labels, accumulators))
