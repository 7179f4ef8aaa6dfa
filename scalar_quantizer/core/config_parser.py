"""
Configuration parser for scalar quantization.

Reads the ``quantization`` and ``execution`` sections of a YAML file (or
dict), expands ``${ENV_VAR}`` references and builds the quantizer
parameters, the quantizer and the execution resources from them.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

from .errors import InvalidParameter
from .registry import QUANTIZER_REGISTRY

DEFAULT_QUANTILE = 0.99


def _expand_env(value: Any) -> Any:
    """Expand ``${VAR}`` in every string of a nested config; unknown names stay as written."""
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str):
        return os.path.expandvars(value)
    return value


class ConfigParser:
    """
    Parse and validate quantization configuration.

    Expected layout::

        quantization:
          method: int8
          quantile: 0.99
        execution:
          device: cpu
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        self.config: Dict[str, Any] = {}

    def load(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load, expand and validate a YAML config file."""
        if config_path:
            self.config_path = Path(config_path)

        if not self.config_path or not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")
        with open(self.config_path, "r", encoding="utf-8") as f:
            return self.load_from_dict(yaml.safe_load(f) or {})

    def load_from_dict(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Expand and validate an in-memory config."""
        self.config = _expand_env(config_dict)
        self.validate()
        return self.config

    def validate(self) -> bool:
        """
        Check the config and fill in defaults.

        Raises:
            ValueError: If a section or method is missing or unknown
            InvalidParameter: If the quantile is not a number in (0, 1]
        """
        if not self.config:
            raise ValueError("Empty configuration")

        quant = self.config.get("quantization")
        if not isinstance(quant, dict):
            raise ValueError("Missing required key: quantization")

        method = quant.get("method")
        if method is None:
            raise ValueError("quantization.method is required")
        if method not in QUANTIZER_REGISTRY:
            raise ValueError(
                f"Invalid quantization.method: {method}. "
                f"Valid: {QUANTIZER_REGISTRY.list()}"
            )

        quantile = quant.setdefault("quantile", DEFAULT_QUANTILE)
        # env expansion hands back strings
        if isinstance(quantile, str):
            try:
                quant["quantile"] = float(quantile)
            except ValueError:
                raise InvalidParameter(
                    f"quantization.quantile is not a number: {quantile}"
                ) from None

        from ..quantization.range_estimator import validate_quantile

        validate_quantile(quant["quantile"])

        execution = self.config.setdefault("execution", {})
        if "backend" in execution:
            logger.warning(
                "execution.backend is deprecated and will be ignored. "
                "The backend follows execution.device."
            )
            execution.pop("backend")

        device = execution.setdefault("device", "cpu")
        if str(device).split(":")[0] not in ("cpu", "cuda"):
            raise ValueError(f"Invalid execution.device: {device}. Valid: cpu, cuda[:N]")

        logger.info("Configuration validation passed")
        return True

    def build_params(self):
        """``SQParams`` from ``quantization.quantile``."""
        from ..quantization.scalar_quantizer import SQParams

        return SQParams(quantile=self.get("quantization.quantile", DEFAULT_QUANTILE))

    def build_quantizer(self):
        """Untrained quantizer registered under ``quantization.method``."""
        return QUANTIZER_REGISTRY.build(self.get("quantization.method"))

    def build_resources(self):
        """``Resources`` for ``execution.device``."""
        from .resources import Resources

        return Resources(device=self.get("execution.device", "cpu"))

    def get(self, key_path: str, default: Any = None) -> Any:
        """Config value at a dot-separated path such as ``"quantization.method"``."""
        value = self.config
        for key in key_path.split("."):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value

    def __repr__(self) -> str:
        return (
            f"ConfigParser(method={self.get('quantization.method')}, "
            f"device={self.get('execution.device')})"
        )
