"""
Device model manifest factories.
"""
from typing import Any, Dict

import factory


class PropertyManifestFactory(factory.Factory):
    """
    Factory for property entries of a DeviceModel manifest.

    Usage:
        prop = PropertyManifestFactory(name="setpoint", data_type="double")
        prop = PropertyManifestFactory(access_mode="ReadOnly", minimum=0)
    """

    class Meta:
        model = dict

    class Params:
        data_type = "int"
        access_mode = "ReadWrite"
        minimum = None
        maximum = None
        default_value = None
        unit = None

    name = factory.Sequence(lambda n: f"property-{n}")
    description = factory.LazyAttribute(lambda o: f"{o.name} property")

    @factory.lazy_attribute
    def type(self) -> Dict[str, Any]:
        attrs: Dict[str, Any] = {"accessMode": self.access_mode}
        if self.minimum is not None:
            attrs["minimum"] = self.minimum
        if self.maximum is not None:
            attrs["maximum"] = self.maximum
        if self.default_value is not None:
            attrs["defaultValue"] = self.default_value
        if self.unit is not None:
            attrs["unit"] = self.unit
        return {self.data_type: attrs}


class DeviceModelManifestFactory(factory.Factory):
    """
    Factory for DeviceModel manifest documents.

    Usage:
        doc = DeviceModelManifestFactory(name="thermostat-model")
        doc = DeviceModelManifestFactory(properties=[PropertyManifestFactory()])
    """

    class Meta:
        model = dict

    class Params:
        name = factory.Sequence(lambda n: f"model-{n}")
        properties = factory.LazyFunction(
            lambda: [
                PropertyManifestFactory(name="temperature", access_mode="ReadOnly"),
                PropertyManifestFactory(
                    name="setpoint",
                    data_type="double",
                    minimum=5.0,
                    maximum=35.0,
                ),
            ]
        )

    apiVersion = "devices.kubeedge.io/v1alpha2"
    kind = "DeviceModel"
    metadata = factory.LazyAttribute(lambda o: {"name": o.name, "namespace": "default"})
    spec = factory.LazyAttribute(lambda o: {"properties": o.properties})
