"""Name-to-factory registry used by the config builder."""

from __future__ import annotations

from typing import Any, Callable

from subtok.errors import ConfigError


class Registry:
    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._items: dict[str, Any] = {}

    def register(self, *names: str) -> Callable[[Any], Any]:
        def decorator(obj: Any) -> Any:
            for name in names:
                self._items[name] = obj
            return obj
        return decorator

    def get(self, name: str) -> Any:
        if name not in self._items:
            known = ", ".join(sorted(self._items))
            raise ConfigError(f"Unknown {self.kind} type: {name} (known: {known})")
        return self._items[name]

    def build(self, spec: dict[str, Any]) -> Any:
        if "type" not in spec:
            raise ConfigError(f"{self.kind} block is missing a 'type' key")
        params = {k: v for k, v in spec.items() if k != "type"}
        return self.get(str(spec["type"]))(**params)

    def names(self) -> list[str]:
        return sorted(self._items)
