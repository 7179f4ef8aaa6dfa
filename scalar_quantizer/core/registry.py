"""
Registry system for execution backends and quantizer specializations.

Backends are keyed by torch device type, quantizers by the name of the
integer type they produce.
"""

from typing import Any, Callable, Dict, Optional, Type


class Registry:
    """Named lookup table for pluggable components."""

    def __init__(self, name: str):
        """
        Args:
            name: Registry name used in error messages
        """
        self._name = name
        self._registry: Dict[str, Any] = {}

    def register(
        self, name: str, obj: Optional[Any] = None
    ) -> Callable[[Type], Type]:
        """
        Register a component under ``name``.

        Works as a class decorator::

            @QUANTIZER_REGISTRY.register("int8")
            class Int8ScalarQuantizer(ScalarQuantizer): ...

        or as a direct call: ``BACKEND_REGISTRY.register("cpu", HostBackend)``.

        Raises:
            ValueError: If ``name`` is already taken
        """

        def _register(obj_to_register: Type) -> Type:
            if name in self._registry:
                raise ValueError(
                    f"{name} already registered in {self._name} registry"
                )
            self._registry[name] = obj_to_register
            return obj_to_register

        if obj is None:
            return _register
        return _register(obj)

    def get(self, name: str) -> Any:
        """
        Look up a registered component.

        Raises:
            KeyError: If ``name`` is unknown; the message lists what is available
        """
        if name not in self._registry:
            available = ", ".join(self._registry.keys())
            raise KeyError(
                f"{name} not found in {self._name} registry. "
                f"Available: {available}"
            )
        return self._registry[name]

    def build(self, name: str, *args, **kwargs) -> Any:
        """Instantiate the component registered under ``name``."""
        return self.get(name)(*args, **kwargs)

    def list(self) -> list:
        return list(self._registry.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._registry

    def __repr__(self) -> str:
        return f"Registry({self._name}, items={self.list()})"


BACKEND_REGISTRY = Registry("backend")
QUANTIZER_REGISTRY = Registry("quantizer")
