from partitioned_flow.partitioned_flow import (  # noqa: F401
    flow_map,
    flow_reduce,
    partition,
    run_partition,
    fork_join_with_threads,
    OrderedMerge,
    GroupMerge,
    FlowError,
    InputError,
    TransformError,
    ConcurrencyError,
)
from partitioned_flow.futures_flow import fork_join_with_executor  # noqa: F401
