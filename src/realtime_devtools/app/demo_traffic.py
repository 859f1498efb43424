"""Synthetic channel traffic for running the devtools against the loopback client."""

import asyncio
import logging
import random

from realtime_devtools.transport import LoopbackClient

logger = logging.getLogger(__name__)

_TABLES = ("todos", "profiles", "messages")
_BROADCAST_EVENTS = ("cursor-move", "typing", "ping")
_PRESENCE_EVENTS = ("join", "leave", "sync")


def emit_one(client: LoopbackClient, channel: str, rng: random.Random) -> str:
    """Publish one random event on channel. Returns its kind."""
    kind = rng.choice(("broadcast", "postgres_changes", "presence"))
    if kind == "broadcast":
        event = rng.choice(_BROADCAST_EVENTS)
        client.broadcast(channel, event, {"x": rng.randint(0, 800), "y": rng.randint(0, 600)})
    elif kind == "postgres_changes":
        table = rng.choice(_TABLES)
        change = rng.choice(("INSERT", "UPDATE", "DELETE"))
        row = {"id": rng.randint(1, 500), "updated_by": "demo"}
        client.database_change(
            channel,
            change,
            table,
            new=row if change != "DELETE" else {},
            old=row if change != "INSERT" else {},
        )
    else:
        event = rng.choice(_PRESENCE_EVENTS)
        client.presence(channel, event, key=f"user-{rng.randint(1, 9)}")
    return kind


async def run(
    client: LoopbackClient,
    channel,
    interval: float = 1.5,
    seed: int | None = None,
) -> None:
    """Publish random traffic forever. Cancel the task to stop.

    channel is a name or a zero-argument callable returning the current one
    (None skips the tick).
    """
    rng = random.Random(seed)
    logger.info("Demo traffic every %.1fs", interval)
    while True:
        await asyncio.sleep(interval * rng.uniform(0.5, 1.5))
        name = channel() if callable(channel) else channel
        if name:
            emit_one(client, name, rng)
