"""
Clock and human-facing identifier generation

All audit timestamps are taken in the single configured zone and stored
naive so that every row compares consistently regardless of the database.
"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo
import random
import string

from restoflow.core.config import get_settings

_LETTERS = string.ascii_uppercase


def local_now() -> datetime:
    """Current wall-clock time in the configured audit zone (naive)"""
    zone = ZoneInfo(get_settings().TIMEZONE)
    return datetime.now(zone).replace(tzinfo=None)


def generate_reference(prefix: str, now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """
    Build an identifier of the form <prefix><YYYYMMDDHHmmss><4 random letters>

    Used for order numbers, kitchen ticket numbers and gateway correlation ids.
    """
    now = now or local_now()
    rng = rng or random
    suffix = "".join(rng.choice(_LETTERS) for _ in range(4))
    return f"{prefix}{now.strftime('%Y%m%d%H%M%S')}{suffix}"
