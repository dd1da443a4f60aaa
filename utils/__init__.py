"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    to_utc,
    to_local,
    get_zone,
    business_date,
    day_bounds,
    month_bounds,
    parse_iso,
)
from utils.actor_context import (
    SYSTEM_ACTOR_ID,
    get_current_actor_id,
    resolve_actor_id,
    set_current_actor_id,
    clear_current_actor_id,
    actor_context,
)
