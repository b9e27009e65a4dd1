import random
from datetime import datetime, UTC
from typing import Optional

import ulid


def new_id(prefix: str = "") -> str:
    """Sortable unique id (ULID) with an optional type prefix, e.g. ``usr_01H...``."""
    return prefix + ulid.new().str


def public_reference(kind: str, now: Optional[datetime] = None) -> str:
    """
    Human-facing reference shown to applicants: ``<KIND><yyyy><mm><4 digits>``.

    e.g. ``GRV2026100042`` for a grievance filed in October 2026.
    """
    now = now or datetime.now(UTC)
    return f"{kind}{now.year}{now.month:02d}{random.randint(0, 9999):04d}"
