import time

import pytest

from partitioned_flow import fizz_buzz, InputError, TransformError
from partitioned_flow.fizz_buzz import Kind, classify, classify_with_delay

EXPECTED_MAP = [
    (1, "Crap"),
    (2, "Crap"),
    (3, "Buzz"),
    (4, "Crap"),
    (5, "Fizz"),
    (6, "Buzz"),
]
EXPECTED_REDUCE = {"Buzz": [3, 6], "Crap": [1, 2, 4], "Fizz": [5]}


def fail_with_five(item):
    if item == 5:
        raise RuntimeError("no fives")
    return classify(item)


def test_classify():
    assert classify(15) == (15, "FizzBuzz")
    assert classify(0) == (0, "FizzBuzz")
    assert classify(10) == (10, "Fizz")
    assert classify(9) == (9, "Buzz")
    assert classify(7) == (7, "Crap")


@pytest.mark.parametrize("kind", ["enum", "stream", "flow", Kind.FLOW])
def test_map(kind):
    assert fizz_buzz.map(kind, range(1, 7)) == EXPECTED_MAP


@pytest.mark.parametrize("kind", ["enum", "flow"])
def test_reduce(kind):
    assert fizz_buzz.reduce(kind, range(1, 7)) == EXPECTED_REDUCE


def test_reduce_stream_not_available():
    with pytest.raises(ValueError):
        fizz_buzz.reduce(Kind.STREAM, range(1, 7))
    with pytest.raises(ValueError):
        fizz_buzz.map("lazy", range(1, 7))


def test_kinds_agree():
    nums = range(0, 301)
    expected = fizz_buzz.map(Kind.ENUM, nums)
    for num_threads in (1, 3, 8):
        result = fizz_buzz.map(
            Kind.FLOW, nums, num_computing_threads=num_threads, bucket_size=16
        )
        assert result == expected

    expected = fizz_buzz.reduce(Kind.ENUM, nums)
    assert fizz_buzz.reduce(Kind.FLOW, nums, num_computing_threads=2) == expected
    assert sorted(expected) == ["Buzz", "Crap", "Fizz", "FizzBuzz"]
    for items in expected.values():
        assert items == sorted(items)


def test_with_delay():
    def mapper(item):
        return classify_with_delay(item, 0.001)

    nums = range(1, 41)
    result = fizz_buzz.map(Kind.FLOW, nums, mapper, num_computing_threads=4)
    assert result == fizz_buzz.map(Kind.ENUM, nums)
    result = fizz_buzz.reduce(Kind.FLOW, nums, mapper, num_computing_threads=4)
    assert result == fizz_buzz.reduce(Kind.ENUM, nums)


@pytest.mark.parametrize("kind", ["enum", "stream", "flow"])
def test_failures_are_the_same_for_every_kind(kind):
    with pytest.raises(TransformError) as excinfo:
        fizz_buzz.map(kind, range(1, 7), fail_with_five)
    assert excinfo.value.item == 5
    assert isinstance(excinfo.value.__cause__, RuntimeError)

    with pytest.raises(InputError):
        fizz_buzz.map(kind, [3, -1])

    if kind != "stream":
        with pytest.raises(TransformError):
            fizz_buzz.reduce(kind, range(1, 7), fail_with_five)
        with pytest.raises(InputError):
            fizz_buzz.reduce(kind, ["3"])


def fail_slow_with_one_and_fast_with_five(item):
    if item == 1:
        time.sleep(0.1)
        raise RuntimeError("one")
    if item == 5:
        raise RuntimeError("five")
    return classify(item)


@pytest.mark.parametrize("kind", ["enum", "stream", "flow"])
def test_every_kind_reports_the_first_failing_item(kind):
    flow_options = {}
    if kind == "flow":
        flow_options = {"num_computing_threads": 2, "bucket_size": 1}
    with pytest.raises(TransformError) as excinfo:
        fizz_buzz.map(
            kind, range(1, 7), fail_slow_with_one_and_fast_with_five, **flow_options
        )
    assert excinfo.value.item == 1


def test_flow_options_only_for_flow():
    with pytest.raises(TypeError):
        fizz_buzz.map(Kind.ENUM, range(1, 7), bucket_sz=3)
    with pytest.raises(TypeError):
        fizz_buzz.map(Kind.STREAM, range(1, 7), num_computing_threads=2)
    with pytest.raises(TypeError):
        fizz_buzz.reduce(Kind.ENUM, range(1, 7), bucket_size=2)
    with pytest.raises(TypeError):
        fizz_buzz.map(Kind.FLOW, range(1, 7), bucket_sz=3)
