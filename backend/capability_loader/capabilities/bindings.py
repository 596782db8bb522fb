from __future__ import annotations
from typing import Any, Dict, List


class BindingRegistry:
    """Process-local namespace that activated capability code registers itself in.

    This is the equivalent of a host global: remote sources call
    ``bindings.register('cv', module)`` and readiness checks look the name up.
    """
    def __init__(self):
        self._bindings: Dict[str, Any] = {}

    def register(self, name: str, value: Any) -> None:
        if not name:
            raise ValueError("binding name is required")
        self._bindings[name] = value

    def unregister(self, name: str) -> None:
        self._bindings.pop(name, None)

    def get(self, name: str, default: Any = None) -> Any:
        return self._bindings.get(name, default)

    def has(self, name: str) -> bool:
        return self._bindings.get(name) is not None

    def has_attr(self, name: str, attr: str) -> bool:
        value = self._bindings.get(name)
        if value is None:
            return False
        return getattr(value, attr, None) is not None

    def names(self) -> List[str]:
        return list(self._bindings.keys())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)
