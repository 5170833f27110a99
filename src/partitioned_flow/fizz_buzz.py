"""
FizzBuzz classification done in several ways.

>>> from partitioned_flow import fizz_buzz
>>> fizz_buzz.map("flow", range(1, 7))
[(1, 'Crap'), (2, 'Crap'), (3, 'Buzz'), (4, 'Crap'), (5, 'Fizz'), (6, 'Buzz')]
>>> fizz_buzz.reduce("enum", range(1, 7))
{'Crap': [1, 2, 4], 'Buzz': [3, 6], 'Fizz': [5]}
"""

from enum import Enum
from typing import Callable, Iterable
import itertools
import time

from partitioned_flow.partitioned_flow import (
    apply_transform,
    check_items,
    flow_map,
    flow_reduce,
)

orig_map = map

FIZZ_BUZZ = "FizzBuzz"
FIZZ = "Fizz"
BUZZ = "Buzz"
CRAP = "Crap"


class Kind(Enum):
    ENUM = "enum"
    STREAM = "stream"
    FLOW = "flow"


def classify(item: int) -> tuple[int, str]:
    # 5 is Fizz and 3 is Buzz, swapped from the usual game
    if item % 15 == 0:
        return item, FIZZ_BUZZ
    elif item % 5 == 0:
        return item, FIZZ
    elif item % 3 == 0:
        return item, BUZZ
    else:
        return item, CRAP


def classify_with_delay(item: int, delay: float) -> tuple[int, str]:
    """Sleep delay seconds before classifying, used to simulate slow work."""
    time.sleep(delay)
    return classify(item)


def _check_no_flow_options(kind, flow_options):
    if flow_options:
        options = ", ".join(sorted(flow_options))
        raise TypeError(f"The {kind.value} kind does not take the options: {options}")


def map(
    kind: Kind | str,
    items: Iterable[int],
    mapper: Callable[[int], tuple[int, str]] = classify,
    **flow_options,
) -> list[tuple[int, str]]:
    """Return the (item, label) pair for every item, in input order.

    flow_options (num_computing_threads, bucket_size, fork_join) are only
    accepted by the flow kind.
    """
    kind = Kind(kind)
    if kind is Kind.FLOW:
        return flow_map(mapper, items, **flow_options)
    _check_no_flow_options(kind, flow_options)

    items = check_items(items)
    if kind is Kind.ENUM:
        return [apply_transform(mapper, item, idx) for idx, item in enumerate(items)]
    else:
        transformed = orig_map(
            apply_transform, itertools.repeat(mapper), items, itertools.count()
        )
        return list(transformed)


def reduce(
    kind: Kind | str,
    items: Iterable[int],
    mapper: Callable[[int], tuple[int, str]] = classify,
    **flow_options,
) -> dict[str, list[int]]:
    """Return a dict with the items for every label, in input order."""
    kind = Kind(kind)
    if kind is Kind.FLOW:
        return flow_reduce(mapper, items, **flow_options)
    elif kind is Kind.STREAM:
        raise ValueError("reduce is only available for the enum and flow kinds")
    _check_no_flow_options(kind, flow_options)

    groups = {}
    for idx, item in enumerate(check_items(items)):
        item, label = apply_transform(mapper, item, idx)
        groups.setdefault(label, []).append(item)
    return groups
