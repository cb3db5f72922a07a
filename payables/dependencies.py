from fastapi import Header

from payables.clock import Clock, system_clock


def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str | None:
    actor_id = (x_actor_id or '').strip()
    return actor_id[:64] or None


def get_clock() -> Clock:
    return system_clock
