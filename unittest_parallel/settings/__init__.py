from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from importlib import import_module
from pprint import pformat
from typing import TYPE_CHECKING, Any, Union, cast

from unittest_parallel.settings import default_settings

if TYPE_CHECKING:
    from types import ModuleType

    _SettingsInputT = Union[Mapping[str, Any], str, None]


SETTINGS_PRIORITIES: dict[str, int] = {
    "default": 0,
    "command": 10,
    "project": 20,
    "cmdline": 40,
}


def get_settings_priority(priority: int | str) -> int:
    """Return the numerical value of a priority name from
    :data:`SETTINGS_PRIORITIES`, or ``priority`` itself if it is a number."""
    if isinstance(priority, str):
        return SETTINGS_PRIORITIES[priority]
    return priority


class SettingsAttribute:
    """A setting value together with the priority it was set with."""

    def __init__(self, value: Any, priority: int):
        self.value: Any = value
        self.priority: int
        if isinstance(self.value, BaseSettings):
            self.priority = max(self.value.maxpriority(), priority)
        else:
            self.priority = priority

    def set(self, value: Any, priority: int) -> None:
        """Replace the value unless it was set with a higher priority."""
        if priority >= self.priority:
            if isinstance(self.value, BaseSettings):
                value = BaseSettings(value, priority=priority)
            self.value = value
            self.priority = priority

    def __repr__(self) -> str:
        return f"<SettingsAttribute value={self.value!r} priority={self.priority}>"


class BaseSettings(MutableMapping[str, Any]):
    """
    A dict-like store of settings where every key remembers the priority it
    was set with. A value only replaces another one set with the same or a
    lower priority, so ``-s NAME=VALUE`` on the command line wins over the
    project settings module, which wins over the defaults.

    Values coming from the command line or the environment are strings; the
    ``get*`` methods convert them.
    """

    def __init__(self, values: _SettingsInputT = None, priority: int | str = "project"):
        self.frozen: bool = False
        self.attributes: dict[str, SettingsAttribute] = {}
        if values:
            self.update(values, priority)

    def __getitem__(self, opt_name: str) -> Any:
        if opt_name not in self:
            return None
        return self.attributes[opt_name].value

    def __contains__(self, name: Any) -> bool:
        return name in self.attributes

    def get(self, name: str, default: Any = None) -> Any:
        return self[name] if self[name] is not None else default

    def getbool(self, name: str, default: bool = False) -> bool:
        """
        Get a setting value as a boolean.

        ``1``, ``'1'``, ``True``, ``'True'`` and ``'true'`` return ``True``;
        ``0``, ``'0'``, ``False``, ``'False'``, ``'false'`` and ``None``
        return ``False``. Anything else raises :exc:`ValueError`.
        """
        got = self.get(name, default)
        try:
            return bool(int(got))
        except ValueError:
            if got in ("True", "true"):
                return True
            if got in ("False", "false"):
                return False
            raise ValueError(
                "Supported values for boolean settings "
                "are 0/1, True/False, '0'/'1', "
                "'True'/'False' and 'true'/'false'"
            )

    def getint(self, name: str, default: int = 0) -> int:
        return int(self.get(name, default))

    def getfloat(self, name: str, default: float = 0.0) -> float:
        return float(self.get(name, default))

    def getlist(self, name: str, default: list[Any] | None = None) -> list[Any]:
        """
        Get a setting value as a list. A string is split on ``,`` (an empty
        string gives an empty list), e.g. ``-s TEST_PATHS=tests,more_tests``.
        """
        value = self.get(name, default or [])
        if not value:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return list(value)

    def getwithbase(self, name: str) -> BaseSettings:
        """Get a composition of a dictionary-like setting and its `_BASE`
        counterpart, e.g. user ``FORMATTERS`` on top of ``FORMATTERS_BASE``.
        """
        if not isinstance(name, str):
            raise ValueError(f"Base setting key must be a string, got {name}")
        compbs = BaseSettings()
        compbs.update(self[name + "_BASE"])
        compbs.update(self[name])
        return compbs

    def getpriority(self, name: str) -> int | None:
        if name not in self:
            return None
        return self.attributes[name].priority

    def maxpriority(self) -> int:
        """The highest priority of any stored setting, ``default`` when empty."""
        if len(self) > 0:
            return max(cast(int, self.getpriority(name)) for name in self)
        return get_settings_priority("default")

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def set(self, name: str, value: Any, priority: int | str = "project") -> None:
        """
        Store ``value`` under ``name`` with the given ``priority`` (a key of
        :data:`SETTINGS_PRIORITIES` or a number), unless it is already set
        with a higher priority.
        """
        self._assert_mutability()
        priority = get_settings_priority(priority)
        if name not in self:
            if isinstance(value, SettingsAttribute):
                self.attributes[name] = value
            else:
                self.attributes[name] = SettingsAttribute(value, priority)
        else:
            self.attributes[name].set(value, priority)

    def setdict(self, values: _SettingsInputT, priority: int | str = "project") -> None:
        self.update(values, priority)

    def setmodule(self, module: ModuleType | str, priority: int | str = "project") -> None:
        """Store every upper-case global of ``module`` (a module or its
        import path) with the given ``priority``."""
        self._assert_mutability()
        if isinstance(module, str):
            module = import_module(module)
        for key in dir(module):
            if key.isupper():
                self.set(key, getattr(module, key), priority)

    # BaseSettings.update() doesn't support all inputs that MutableMapping.update() supports
    def update(self, values: _SettingsInputT, priority: int | str = "project") -> None:  # type: ignore[override]
        """
        Store key/value pairs with a given priority. A string is parsed as a
        JSON object first. The per-key priorities of a :class:`BaseSettings`
        are kept and ``priority`` is ignored.
        """
        self._assert_mutability()
        if isinstance(values, str):
            values = cast(dict[str, Any], json.loads(values))
        if values is not None:
            if isinstance(values, BaseSettings):
                for name, value in values.items():
                    self.set(name, value, cast(int, values.getpriority(name)))
            else:
                for name, value in values.items():
                    self.set(name, value, priority)

    def __delitem__(self, name: str) -> None:
        self._assert_mutability()
        del self.attributes[name]

    def _assert_mutability(self) -> None:
        if self.frozen:
            raise TypeError("Trying to modify an immutable Settings object")

    def freeze(self) -> None:
        """Make these settings read-only. A run freezes its settings when
        it starts."""
        self.frozen = True

    def __iter__(self) -> Iterator[str]:
        return iter(self.attributes)

    def __len__(self) -> int:
        return len(self.attributes)

    def _to_dict(self) -> dict[str, Any]:
        return {
            k: (v._to_dict() if isinstance(v, BaseSettings) else v)
            for k, v in self.items()
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {pformat(self._to_dict())}>"


class Settings(BaseSettings):
    """
    :class:`BaseSettings` pre-populated with
    :mod:`unittest_parallel.settings.default_settings` at the ``default``
    priority.
    """

    def __init__(self, values: _SettingsInputT = None, priority: int | str = "project"):
        # Do not pass kwarg values here. We don't want to promote user-defined
        # dicts; they are merged with their _BASE counterpart by getwithbase()
        super().__init__()
        self.setmodule(default_settings, "default")
        # Promote default dictionaries to BaseSettings instances for per-key
        # priorities
        for name, val in self.items():
            if isinstance(val, dict):
                self.set(name, BaseSettings(val, "default"), "default")
        self.update(values, priority)


def iter_default_settings() -> Iterable[tuple[str, Any]]:
    """Return the default settings as an iterator of (name, value) tuples"""
    for name in dir(default_settings):
        if name.isupper():
            yield name, getattr(default_settings, name)


def overridden_settings(settings: Mapping[str, Any]) -> Iterable[tuple[str, Any]]:
    """Return an iterable of the settings that have been overridden"""
    for name, defvalue in iter_default_settings():
        value = settings[name]
        if not isinstance(defvalue, dict) and value != defvalue:
            yield name, value
