"""
Unit tests for DeviceModelRegistry.
"""
import pytest

from twin_server.exceptions import ConfigError, NotFoundError, ValidationError
from twin_server.models.definitions import DeviceModel, PropertyDefinition
from twin_server.models.registry import DeviceModelRegistry


def make_model(name="fan-model", **prop_kwargs):
    prop = dict(name="speed", data_type="int", access_mode="ReadWrite")
    prop.update(prop_kwargs)
    return DeviceModel(name=name, properties=[PropertyDefinition(**prop)])


@pytest.fixture
def empty_registry():
    return DeviceModelRegistry()


class TestRegister:
    """Test model registration."""

    def test_register_and_get(self, empty_registry):
        model = make_model()

        empty_registry.register(model)

        assert empty_registry.get("fan-model") is model
        assert "fan-model" in empty_registry
        assert len(empty_registry) == 1
        assert empty_registry.get_property("fan-model", "speed").name == "speed"

    def test_unreferenced_model_replaced(self, empty_registry):
        empty_registry.register(make_model())
        replacement = make_model(maximum=10)

        empty_registry.register(replacement)

        assert empty_registry.require("fan-model") is replacement

    def test_referenced_model_is_immutable(self, empty_registry):
        empty_registry.register(make_model())
        empty_registry.acquire("fan-model", "fan-1")

        with pytest.raises(ConfigError):
            empty_registry.register(make_model(maximum=10))

    def test_invalid_default_rejected(self, empty_registry):
        with pytest.raises(ValidationError) as exc_info:
            empty_registry.register(make_model(default_value="fast"))

        assert "speed" in exc_info.value.errors

    def test_default_outside_range_rejected(self, empty_registry):
        with pytest.raises(ValidationError):
            empty_registry.register(make_model(minimum=0, maximum=5, default_value=9))

    def test_range_on_string_rejected(self, empty_registry):
        with pytest.raises(ValidationError):
            empty_registry.register(make_model(data_type="string", minimum=1))

    def test_minimum_above_maximum_rejected(self, empty_registry):
        with pytest.raises(ValidationError) as exc_info:
            empty_registry.register(make_model(minimum=10, maximum=1))

        assert "minimum is greater than maximum" in str(exc_info.value)


class TestReferences:
    """Test device references to models."""

    def test_acquire_unknown_model_raises(self, empty_registry):
        with pytest.raises(ConfigError):
            empty_registry.acquire("missing", "fan-1")

    def test_unregister_referenced_model_raises(self, empty_registry):
        empty_registry.register(make_model())
        empty_registry.acquire("fan-model", "fan-1")

        with pytest.raises(ConfigError) as exc_info:
            empty_registry.unregister("fan-model")

        assert exc_info.value.details["devices"] == ["fan-1"]

    def test_release_allows_unregister(self, empty_registry):
        empty_registry.register(make_model())
        empty_registry.acquire("fan-model", "fan-1")
        empty_registry.release("fan-model", "fan-1")

        empty_registry.unregister("fan-model")

        assert "fan-model" not in empty_registry

    def test_unregister_unknown_raises(self, empty_registry):
        with pytest.raises(NotFoundError):
            empty_registry.unregister("missing")

    def test_referents_and_summary(self, empty_registry):
        empty_registry.register(make_model())
        empty_registry.acquire("fan-model", "fan-2")
        empty_registry.acquire("fan-model", "fan-1")

        assert empty_registry.referents("fan-model") == ["fan-1", "fan-2"]
        assert "fan-model: 1 properties, 2 devices" in empty_registry.summary()
