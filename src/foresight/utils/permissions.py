"""
Command rate limiting.

Provides the ``cooldown`` decorator used by the prediction commands.
"""

from __future__ import annotations

import time
from collections import defaultdict
from enum import Enum
from functools import wraps
from typing import Any, Callable, TypeVar

from twitchio.ext.commands import Context

from foresight.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class CooldownBucket(Enum):
    """Who shares a cooldown."""

    USER = "user"
    CHANNEL = "channel"
    GLOBAL = "global"


class CooldownManager:
    """Tracks when each command was last used per bucket."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        # {command_name: {bucket_key: last_used}}
        self._last_used: dict[str, dict[str, float]] = defaultdict(dict)
        self._clock = clock

    @staticmethod
    def bucket_key(ctx: Context, bucket: CooldownBucket) -> str:
        if bucket == CooldownBucket.USER:
            return f"{ctx.channel.name}:{ctx.author.name}"
        if bucket == CooldownBucket.CHANNEL:
            return ctx.channel.name
        return "global"

    def remaining(self, command_name: str, ctx: Context, rate: float, bucket: CooldownBucket) -> float:
        """Seconds left before ``command_name`` may run again, 0 if ready."""
        last_used = self._last_used[command_name].get(self.bucket_key(ctx, bucket))
        if last_used is None:
            return 0.0
        return max(0.0, rate - (self._clock() - last_used))

    def touch(self, command_name: str, ctx: Context, bucket: CooldownBucket) -> None:
        self._last_used[command_name][self.bucket_key(ctx, bucket)] = self._clock()

    def reset(self, command_name: str, ctx: Context, bucket: CooldownBucket) -> None:
        self._last_used[command_name].pop(self.bucket_key(ctx, bucket), None)


# Global cooldown manager
_cooldown_manager = CooldownManager()


def cooldown(
    rate: float = 3.0,
    bucket: CooldownBucket = CooldownBucket.USER,
) -> Callable[[F], F]:
    """
    Decorator that adds a cooldown to a cog command.

    Invocations during the cooldown are ignored without a reply.

    Usage:
        @commands.command()
        @cooldown(rate=5.0, bucket=CooldownBucket.USER)
        async def vote(self, ctx):
            ...
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(self: Any, ctx: Context, *args: Any, **kwargs: Any) -> Any:
            command_name = func.__name__
            remaining = _cooldown_manager.remaining(command_name, ctx, rate, bucket)
            if remaining > 0:
                logger.debug(
                    "Command %s on cooldown for %s (%.1fs remaining)",
                    command_name,
                    ctx.author.name,
                    remaining,
                )
                return None

            _cooldown_manager.touch(command_name, ctx, bucket)
            return await func(self, ctx, *args, **kwargs)

        wrapper._cooldown_rate = rate  # type: ignore[attr-defined]
        wrapper._cooldown_bucket = bucket  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator


def reset_cooldown(
    command_name: str,
    ctx: Context,
    bucket: CooldownBucket = CooldownBucket.USER,
) -> None:
    """Let a user retry a command at once, e.g. after a usage error."""
    _cooldown_manager.reset(command_name, ctx, bucket)
