from functools import partial
from statistics import mean
import logging

import numpy
from matplotlib.figure import Figure
from matplotlib.backends.backend_agg import FigureCanvasAgg as FigureCanvas
from matplotlib.ticker import MaxNLocator

from partitioned_flow import fizz_buzz
from partitioned_flow.fizz_buzz import Kind, classify_with_delay
from partitioned_flow.futures_flow import fork_join_with_executor
from performance_utils import (
    time_it,
    get_python_version,
    PERFORMANCE_CHARTS_DIR,
    BLUE,
    RED,
    GREEN,
    GREY,
)

logger = logging.getLogger(__name__)


def do_sequential_experiment(fizz_buzz_funct, kind, items, delay, num_repeats):
    mapper = partial(classify_with_delay, delay=delay)
    times = []
    for _ in range(num_repeats):
        res = time_it(fizz_buzz_funct, kind, items, mapper)
        times.append(res["time"])
    return {"time": mean(times), "result": res["result"]}


def do_flow_experiment(
    fizz_buzz_funct,
    items,
    delay,
    num_threadss,
    bucket_size,
    num_repeats,
    expected_result,
    fork_join=None,
):
    mapper = partial(classify_with_delay, delay=delay)
    times = []
    for num_threads in num_threadss:
        times_used = []
        for _ in range(num_repeats):
            res = time_it(
                fizz_buzz_funct,
                Kind.FLOW,
                items,
                mapper,
                num_computing_threads=num_threads,
                bucket_size=bucket_size,
                fork_join=fork_join,
            )
            assert res["result"] == expected_result
            times_used.append(res["time"])
        logger.info("%d threads: %.3f s", num_threads, mean(times_used))
        times.append(mean(times_used))
    return {"num_threadss": num_threadss, "times": numpy.array(times)}


def check_fizz_buzz_performance():
    items = range(1, 501)
    delay = 0.01
    num_threadss = [1, 2, 4, 8, 16, 32]
    bucket_size = 8
    num_repeats = 3

    fig = Figure()
    _canvas = FigureCanvas(fig)
    map_axes = fig.add_subplot(1, 2, 1)
    reduce_axes = fig.add_subplot(1, 2, 2)

    experiments = [
        (fizz_buzz.map, map_axes, [Kind.ENUM, Kind.STREAM]),
        (fizz_buzz.reduce, reduce_axes, [Kind.ENUM]),
    ]
    for fizz_buzz_funct, axes, sequential_kinds in experiments:
        for kind in sequential_kinds:
            res = do_sequential_experiment(
                fizz_buzz_funct, kind, items, delay, num_repeats
            )
            logger.info(
                "%s %s: %.3f s", fizz_buzz_funct.__name__, kind.value, res["time"]
            )
            expected_result = res["result"]
        sequential_time = res["time"]

        ideal_times = sequential_time / numpy.array(num_threadss)
        axes.plot(
            num_threadss, ideal_times, linestyle="-", marker="o", color=GREY, label="ideal"
        )
        axes.axhline(sequential_time, linestyle="--", color=RED, label="sequential")

        threads_result = do_flow_experiment(
            fizz_buzz_funct,
            items,
            delay,
            num_threadss,
            bucket_size,
            num_repeats,
            expected_result,
        )
        executor_result = do_flow_experiment(
            fizz_buzz_funct,
            items,
            delay,
            num_threadss,
            bucket_size,
            num_repeats,
            expected_result,
            fork_join=fork_join_with_executor,
        )
        axes.plot(
            threads_result["num_threadss"],
            threads_result["times"],
            linestyle="-",
            marker="o",
            color=BLUE,
            label="flow threads",
        )
        axes.plot(
            executor_result["num_threadss"],
            executor_result["times"],
            linestyle="-",
            marker="o",
            color=GREEN,
            label="flow executor",
        )
        axes.set_title(fizz_buzz_funct.__name__)
        axes.set_xlabel("Num. threads")
        axes.set_ylabel("Time (s)")
        axes.xaxis.set_major_locator(MaxNLocator(integer=True))
        axes.set_yscale("log")
        axes.legend()

    PERFORMANCE_CHARTS_DIR.mkdir(exist_ok=True)
    plot_path = PERFORMANCE_CHARTS_DIR / f"fizz_buzz.{get_python_version()}.svg"
    fig.savefig(plot_path)


def check_bucket_size_relevance():
    items = range(1, 501)
    delay = 0.01
    bucket_sizes = [1, 2, 4, 8, 16, 32, 64, 128, 500]
    num_threads = 8
    num_repeats = 3

    expected_result = fizz_buzz.map(Kind.ENUM, items)
    times = []
    for bucket_size in bucket_sizes:
        res = do_flow_experiment(
            fizz_buzz.map,
            items,
            delay,
            (num_threads,),
            bucket_size,
            num_repeats,
            expected_result,
        )
        times.append(float(res["times"][0]))

    fig = Figure()
    _canvas = FigureCanvas(fig)
    axes = fig.add_subplot(1, 1, 1)
    axes.plot(bucket_sizes, times, linestyle="-", marker="o", color=BLUE)
    axes.set_xlabel("Bucket size")
    axes.set_ylabel("Time (s)")
    axes.set_xscale("log")

    PERFORMANCE_CHARTS_DIR.mkdir(exist_ok=True)
    plot_path = (
        PERFORMANCE_CHARTS_DIR / f"bucket_size_relevance.{get_python_version()}.svg"
    )
    fig.savefig(plot_path)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    check_fizz_buzz_performance()
    # check_bucket_size_relevance()
