# Folder: qport-core/ingestion/identifiers.py
#
# Incident id generation.
#   INC-XXXXXX   classified incidents (6 random base36 chars)
#   ERR-<ts36>   synthesized fallbacks (base36 millisecond timestamp)
#
# Every id handed out is remembered for the lifetime of the process,
# so two incidents can never share an id.

import random
import string
import threading
import time

_BASE36 = string.digits + string.ascii_uppercase

_issued = set()
_issued_lock = threading.Lock()


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def new_incident_id(rng: random.Random = None) -> str:
    rng = rng or random
    with _issued_lock:
        while True:
            candidate = "INC-" + "".join(rng.choice(_BASE36) for _ in range(6))
            if candidate not in _issued:
                _issued.add(candidate)
                return candidate


def new_error_id(now_ms: int = None) -> str:
    ts = int(time.time() * 1000) if now_ms is None else now_ms
    with _issued_lock:
        # Two fallbacks in the same millisecond: take the next free one
        while True:
            candidate = "ERR-" + to_base36(ts)
            if candidate not in _issued:
                _issued.add(candidate)
                return candidate
            ts += 1
