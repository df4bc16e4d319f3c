"""
Device model registry.

Central registry of immutable device models. Devices reference
models by name; a referenced model can be neither replaced nor
removed.
"""
import logging
import threading
from typing import Dict, Iterator, List, Optional, Set

from ..codecs.values import check_range, coerce
from ..exceptions import ConfigError, NotFoundError, ValidationError
from .definitions import DataType, DeviceModel, PropertyDefinition

logger = logging.getLogger(__name__)


class DeviceModelRegistry:
    """
    Central registry for device models.

    Provides methods for:
    - Registering and retrieving models
    - Tracking which devices reference a model
    - Property schema lookup
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._models: Dict[str, DeviceModel] = {}
        self._references: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def register(self, model: DeviceModel) -> None:
        """
        Register a device model.

        Re-registering an unreferenced model replaces it.

        Args:
            model: The device model to register.

        Raises:
            ConfigError: If the model is invalid or a referenced model
                with the same name exists.
        """
        self._validate(model)

        with self._lock:
            if self._references.get(model.name):
                raise ConfigError(
                    f"Device model '{model.name}' is referenced by "
                    f"{len(self._references[model.name])} device(s) and is immutable"
                )
            replaced = model.name in self._models
            self._models[model.name] = model
            self._references.setdefault(model.name, set())

        logger.debug(
            f"{'Replaced' if replaced else 'Registered'} device model: "
            f"{model.name} ({len(model.properties)} properties)"
        )

    def unregister(self, name: str) -> DeviceModel:
        """
        Remove a device model.

        Raises:
            NotFoundError: If the model is not registered.
            ConfigError: If devices still reference the model.
        """
        with self._lock:
            if name not in self._models:
                raise NotFoundError("DeviceModel", name)
            referents = self._references.get(name)
            if referents:
                raise ConfigError(
                    f"Device model '{name}' is still referenced by "
                    f"{', '.join(sorted(referents))}",
                    details={"devices": sorted(referents)},
                )
            self._references.pop(name, None)
            model = self._models.pop(name)

        logger.debug(f"Unregistered device model: {name}")
        return model

    def get(self, name: str) -> Optional[DeviceModel]:
        """Get a model by name."""
        return self._models.get(name)

    def require(self, name: str) -> DeviceModel:
        """Get a model by name or raise NotFoundError."""
        model = self._models.get(name)
        if model is None:
            raise NotFoundError("DeviceModel", name)
        return model

    def get_property(self, model_name: str, property_name: str) -> Optional[PropertyDefinition]:
        model = self._models.get(model_name)
        return model.get_property(property_name) if model else None

    def acquire(self, model_name: str, device_id: str) -> DeviceModel:
        """
        Record that a device references a model.

        Raises:
            ConfigError: If the model is not registered.
        """
        with self._lock:
            model = self._models.get(model_name)
            if model is None:
                raise ConfigError(f"Device model '{model_name}' is not registered")
            self._references[model_name].add(device_id)
            return model

    def release(self, model_name: str, device_id: str) -> None:
        """Drop a device's reference to a model."""
        with self._lock:
            self._references.get(model_name, set()).discard(device_id)

    def referents(self, model_name: str) -> List[str]:
        return sorted(self._references.get(model_name, ()))

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, name: str) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[DeviceModel]:
        return iter(list(self._models.values()))

    def summary(self) -> str:
        """Human-readable summary of registered models."""
        lines = [f"Device Model Registry: {len(self)} models"]
        for model in self:
            lines.append(
                f"  {model.name}: {len(model.properties)} properties, "
                f"{len(self._references.get(model.name, ()))} devices"
            )
        return "\n".join(lines)

    @staticmethod
    def _validate(model: DeviceModel) -> None:
        """Check declared defaults and ranges against property types."""
        error = ValidationError(f"Device model '{model.name}' is invalid")

        if not model.name:
            error.add_error("name", "model name is required")

        for prop in model.properties:
            numeric = prop.data_type in (DataType.INT, DataType.DOUBLE, DataType.FLOAT)
            if not numeric and (prop.minimum is not None or prop.maximum is not None):
                error.add_error(prop.name, f"{prop.data_type.value} cannot declare a range")
            if (
                prop.minimum is not None
                and prop.maximum is not None
                and prop.minimum > prop.maximum
            ):
                error.add_error(prop.name, "minimum is greater than maximum")
            if prop.default_value is not None:
                try:
                    coerce(prop.default_value, prop.data_type)
                    check_range(prop.default_value, prop)
                except ValueError as e:
                    error.add_error(prop.name, f"invalid defaultValue: {e}")

        if error.has_errors():
            raise error
