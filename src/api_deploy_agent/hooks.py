"""Hook bus: ordered extension points shared by the core and its plugins.

A plugin is any object with a ``name`` and a ``hooks()`` method returning a
mapping of event name to callback. Callbacks are registered in plugin order
and, when an event is fired, receive the arguments returned by the previous
callback. A callback may be sync or async and returns either ``None`` (keep
the arguments), a tuple of the same length, or, for single-argument events,
the replacement value.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable

from api_deploy_agent.errors import HookContractError, HookRegistrationError

logger = logging.getLogger(__name__)

# Number of positional arguments each core event is fired with.
EVENT_ARITY: dict[str, int] = {
    "before_apis_load": 0,
    "before_api_load": 2,
    "after_api_load": 1,
    "after_apis_load": 1,
    "before_endpoints_load": 0,
    "before_endpoint_load": 2,
    "after_endpoint_load": 1,
    "after_endpoints_load": 1,
    "load_integrations": 3,
    "before_add_integration_data_to_endpoints": 2,
    "after_add_integration_data_to_endpoints": 2,
    "before_add_endpoints_to_apis": 2,
    "after_add_endpoints_to_apis": 2,
    "before_deploy_apis": 1,
    "after_deploy_apis": 2,
    "before_publish_all_apis": 1,
    "after_publish_all_apis": 1,
}


@dataclass
class HookRegistration:
    event: str
    callback: Callable[..., Any]
    plugin_name: str


class HookBus:
    """Registry of hook callbacks keyed by event name."""

    def __init__(self):
        self._callbacks: dict[str, list[HookRegistration]] = {}
        self._plugins: list[Any] = []

    @property
    def plugins(self) -> list[Any]:
        return list(self._plugins)

    def get_plugin(self, name: str) -> Any | None:
        for plugin in self._plugins:
            if getattr(plugin, "name", None) == name:
                return plugin
        return None

    def register(self, event: str, callback: Callable[..., Any], plugin_name: str = "anonymous") -> None:
        """Append ``callback`` to the callbacks of ``event``."""
        arity = EVENT_ARITY.get(event)
        if arity is not None:
            _check_arity(event, callback, arity, plugin_name)
        self._callbacks.setdefault(event, []).append(HookRegistration(event, callback, plugin_name))
        logger.debug("Registered hook %s from plugin %s", event, plugin_name)

    def register_plugin(self, plugin: Any) -> None:
        """Register every hook exposed by ``plugin``."""
        name = getattr(plugin, "name", type(plugin).__name__)
        hooks = plugin.hooks() if hasattr(plugin, "hooks") else {}
        for event, callback in hooks.items():
            self.register(event, callback, plugin_name=name)
        self._plugins.append(plugin)

    def callbacks(self, event: str) -> list[HookRegistration]:
        return list(self._callbacks.get(event, []))

    async def fire(self, event: str, *args: Any) -> tuple:
        """Run the callbacks of ``event`` in order and return the final arguments."""
        current = tuple(args)
        for registration in self._callbacks.get(event, []):
            result = registration.callback(*current)
            if inspect.isawaitable(result):
                result = await result
            current = _thread_result(registration, current, result)
        return current


def _check_arity(event: str, callback: Callable[..., Any], arity: int, plugin_name: str) -> None:
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        return
    try:
        signature.bind(*([None] * arity))
    except TypeError as e:
        raise HookRegistrationError(
            f"Hook {event} of plugin {plugin_name} must accept {arity} positional argument(s): {e}"
        ) from e


def _thread_result(registration: HookRegistration, args: tuple, result: Any) -> tuple:
    if result is None:
        return args
    if len(args) == 1 and not isinstance(result, tuple):
        return (result,)
    if isinstance(result, tuple) and len(result) == len(args):
        return result
    raise HookContractError(
        f"Hook {registration.event} of plugin {registration.plugin_name} returned "
        f"{result!r}, expected None or a tuple of {len(args)} argument(s)"
    )
