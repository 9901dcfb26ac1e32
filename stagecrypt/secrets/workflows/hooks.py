"""Named lifecycle hooks a host workflow can fire.

A host (CI pipeline, deploy script, the bundled CLI) fires events such as
``encrypt:encrypt`` or ``before:deploy:cleanup``; callbacks registered for
that name run in registration order with the invocation context.
"""
import logging
from typing import Callable, Dict, List, Optional

from ..domains.config_loader import Settings
from ..domains.models import InvocationContext
from .stage_operations import LogSink, check_stage, decrypt_stage, encrypt_stage

logger = logging.getLogger(__name__)

ENCRYPT_EVENT = "encrypt:encrypt"
DECRYPT_EVENT = "decrypt:decrypt"

Hook = Callable[[InvocationContext], object]


class HookRegistry:
    """Maps lifecycle event names to callbacks."""

    def __init__(self):
        self._hooks: Dict[str, List[Hook]] = {}

    def register(self, event: str, callback: Hook) -> None:
        if not event:
            raise ValueError("Hook event name cannot be empty")
        self._hooks.setdefault(event, []).append(callback)
        logger.debug(f"Registered hook for '{event}'")

    def events(self) -> List[str]:
        return sorted(self._hooks)

    def run(self, event: str, ctx: InvocationContext) -> bool:
        """
        Run every callback registered for ``event``.

        Returns:
            False if nothing is registered for the event, True otherwise

        Raises:
            Whatever a callback raises; later callbacks are skipped
        """
        callbacks = self._hooks.get(event)
        if not callbacks:
            logger.debug(f"No hooks registered for '{event}'")
            return False
        for callback in callbacks:
            callback(ctx)
        return True


def build_registry(settings: Settings, log: Optional[LogSink] = None, scheme: Optional[str] = None) -> HookRegistry:
    """
    Register the stage operations at their lifecycle points.

    The preflight check is attached to ``settings.preflight_event`` so the
    host decides when it runs.
    """
    registry = HookRegistry()
    registry.register(ENCRYPT_EVENT, lambda ctx: encrypt_stage(ctx, log, scheme or settings.scheme))
    registry.register(DECRYPT_EVENT, lambda ctx: decrypt_stage(ctx, log))
    registry.register(settings.preflight_event, check_stage)
    return registry
