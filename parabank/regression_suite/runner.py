"""Load scenarios and hooks handed over by a BDD runner."""

import importlib
import inspect
import logging
from typing import Any

from parabank.regression_suite.errors import ConfigurationError
from parabank.regression_suite.scheduler import LifecycleHook, Scenario

logger = logging.getLogger(__name__)


def import_string(path: str) -> Any:
    """Return the attribute at ``module:attr`` or ``module.attr``.

    Raises:
        ConfigurationError: If the path is malformed or cannot be imported

    """
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ConfigurationError(f"Invalid import path '{path}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import '{module_name}': {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ConfigurationError(
            f"Module '{module_name}' has no attribute '{attr}'"
        ) from e


async def _resolve(target: Any) -> Any:
    if callable(target) and not isinstance(target, type):
        target = target()
    if inspect.isawaitable(target):
        target = await target
    return target


async def load_scenarios(path: str) -> list[Scenario]:
    """Scenarios from an attribute that is a sequence or a (async) factory.

    Raises:
        ConfigurationError: If the attribute does not yield scenarios

    """
    scenarios = await _resolve(import_string(path))
    try:
        loaded = list(scenarios)
    except TypeError as e:
        raise ConfigurationError(f"'{path}' did not provide scenarios") from e

    invalid = [s for s in loaded if not isinstance(s, Scenario)]
    if invalid:
        raise ConfigurationError(
            f"'{path}' provided {len(invalid)} object(s) that are not scenarios"
        )
    logger.info(f"Loaded {len(loaded)} scenarios from {path}")
    return loaded


async def load_hooks(path: str) -> list[LifecycleHook]:
    """Hooks from an attribute holding a hook, a hook list or a factory.

    Raises:
        ConfigurationError: If the attribute does not yield hooks

    """
    hooks = await _resolve(import_string(path))
    if isinstance(hooks, LifecycleHook):
        return [hooks]
    try:
        loaded = list(hooks)
    except TypeError as e:
        raise ConfigurationError(f"'{path}' did not provide hooks") from e
    if not all(isinstance(h, LifecycleHook) for h in loaded):
        raise ConfigurationError(f"'{path}' provided objects that are not hooks")
    return loaded
