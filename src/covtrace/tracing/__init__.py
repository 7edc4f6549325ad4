"""Statement tracing: keys, counters, instrumentation and binding swaps.

Sessions live in ``covtrace.tracing.session``; they are not re-exported here
because they depend on ``covtrace.coverage``, which itself uses the keys.
"""

from covtrace.tracing.counters import CounterStore
from covtrace.tracing.instrument import COUNTER_NAME, Instrumenter
from covtrace.tracing.keys import UNKNOWN_FILE, SourcePosition, parse_key, source_key
from covtrace.tracing.rebuild import instrument_function
from covtrace.tracing.scopes import (
    DispatchScope,
    MappingScope,
    NamespaceScope,
    Scope,
    as_scope,
    iter_bindings,
)
from covtrace.tracing.snapshot import CallableSnapshot, SnapshotState, swapped

__all__ = [
    # Keys
    "SourcePosition",
    "UNKNOWN_FILE",
    "parse_key",
    "source_key",
    # Counters and instrumentation
    "COUNTER_NAME",
    "CounterStore",
    "Instrumenter",
    "instrument_function",
    # Scopes
    "DispatchScope",
    "MappingScope",
    "NamespaceScope",
    "Scope",
    "as_scope",
    "iter_bindings",
    # Snapshots
    "CallableSnapshot",
    "SnapshotState",
    "swapped",
]
