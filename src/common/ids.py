import itertools
import time
import uuid

_counter = itertools.count()


def generate_id() -> str:
    return str(uuid.uuid4())[:8]


def generate_sortable_id() -> str:
    # nanosecond clock, then a per-process counter to break ties
    return f"{time.time_ns():x}-{next(_counter) % 0x10000:04x}-{uuid.uuid4().hex[:4]}"
