from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import random
import string
import threading
import time

_id_lock = threading.Lock()
_last_millis = 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _next_millis() -> int:
    # strictement croissant : deux créations dans la même milliseconde
    # ne partagent pas d'identifiant
    global _last_millis
    with _id_lock:
        now = int(time.time() * 1000)
        _last_millis = now if now > _last_millis else _last_millis + 1
        return _last_millis


def gen_id(prefix: str, *, suffix: bool = False) -> str:
    """PREFIX-<epoch-millis>, avec suffixe aléatoire pour les créations en rafale."""
    base = f"{prefix}-{_next_millis()}"
    if suffix:
        tail = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
        return f"{base}-{tail}"
    return base


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # anciens documents : dates naïves => UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
