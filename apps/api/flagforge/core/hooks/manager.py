"""
Hook manager for change notifications.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()

# organization, environments (enabled before or after the change),
# projects (old and new, "" for "no project")
FEATURE_UPDATED = "feature.updated"

Handler = Callable[..., Awaitable[Any]]


@dataclass
class Listener:
    handler: Handler
    source: str = ""


@dataclass
class HookResult:
    """Outcome of one trigger: how many listeners ran and which failed."""
    name: str
    called: int = 0
    failures: list[tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class HookManager:
    """
    Fans a named event out to its listeners, in registration order.

    Listener failures are logged and collected on the HookResult; they never
    reach the code that triggered the event, so a feature write succeeds
    even when webhook dispatch or a cache listener is broken.

        hooks.register(FEATURE_UPDATED, notifier, source="webhooks")
        await hooks.trigger(FEATURE_UPDATED, organization=org_id,
                            environments=["production"], projects=["", "prj_web"])
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def register(self, name: str, handler: Handler, *, source: str = "") -> None:
        self._listeners[name].append(Listener(handler, source))
        logger.debug("Registered hook listener", hook=name, source=source)

    def unregister(self, name: str, handler: Handler) -> bool:
        listeners = self._listeners.get(name, [])
        for listener in listeners:
            if listener.handler is handler:
                listeners.remove(listener)
                return True
        return False

    def on(self, name: str) -> Callable[[Handler], Handler]:
        """Decorator form of register()."""
        def decorator(func: Handler) -> Handler:
            self.register(name, func, source=func.__module__)
            return func
        return decorator

    async def trigger(self, name: str, **kwargs: Any) -> HookResult:
        result = HookResult(name=name)

        for listener in list(self._listeners.get(name, [])):
            result.called += 1
            try:
                await listener.handler(**kwargs)
            except Exception as e:
                result.failures.append((listener.source or repr(listener.handler), e))
                logger.error(
                    "Hook listener failed",
                    hook=name,
                    source=listener.source,
                    error=str(e),
                )

        return result


# Process-wide manager; main registers the webhook notifier on it
hooks = HookManager()
