"""
Device manifest factories.
"""
from typing import Any, Dict

import factory


class ModbusVisitorManifestFactory(factory.Factory):
    """
    Factory for modbus property visitors.

    Usage:
        visitor = ModbusVisitorManifestFactory(propertyName="setpoint", offset=1)
    """

    class Meta:
        model = dict

    class Params:
        register = "HoldingRegister"
        offset = 0
        limit = 1
        scale = 1.0
        is_swap = False
        is_register_swap = False

    propertyName = factory.Sequence(lambda n: f"property-{n}")

    @factory.lazy_attribute
    def modbus(self) -> Dict[str, Any]:
        return {
            "register": self.register,
            "offset": self.offset,
            "limit": self.limit,
            "scale": self.scale,
            "isSwap": self.is_swap,
            "isRegisterSwap": self.is_register_swap,
        }


class OpcuaVisitorManifestFactory(factory.Factory):
    """Factory for OPC-UA property visitors."""

    class Meta:
        model = dict

    class Params:
        node_id = factory.Sequence(lambda n: f"ns=2;i={1000 + n}")

    propertyName = factory.Sequence(lambda n: f"property-{n}")
    opcua = factory.LazyAttribute(lambda o: {"nodeID": o.node_id})


class BluetoothVisitorManifestFactory(factory.Factory):
    """Factory for bluetooth property visitors."""

    class Meta:
        model = dict

    class Params:
        characteristic_uuid = "f000aa0104514000b000000000000000"
        start_index = 0
        end_index = 1
        operations = factory.LazyFunction(list)
        data_write = factory.LazyFunction(dict)

    propertyName = factory.Sequence(lambda n: f"property-{n}")

    @factory.lazy_attribute
    def bluetooth(self) -> Dict[str, Any]:
        return {
            "characteristicUUID": self.characteristic_uuid,
            "dataConverter": {
                "startIndex": self.start_index,
                "endIndex": self.end_index,
                "orderOfOperations": self.operations,
            },
            "dataWrite": self.data_write,
        }


class DeviceManifestFactory(factory.Factory):
    """
    Factory for Device manifest documents.

    Usage:
        doc = DeviceManifestFactory(name="thermostat-1", model_name="thermostat-model")
        doc = DeviceManifestFactory(protocol={"opcua": {"url": "opc.tcp://10.0.0.5:4840"}})
    """

    class Meta:
        model = dict

    class Params:
        name = factory.Sequence(lambda n: f"device-{n}")
        model_name = "thermostat-model"
        protocol = factory.LazyFunction(lambda: {"modbus": {"slaveID": 1}})
        visitors = factory.LazyFunction(list)
        data = None
        node_selector = factory.LazyFunction(
            lambda: {
                "nodeSelectorTerms": [{
                    "matchExpressions": [{
                        "key": "",
                        "operator": "In",
                        "values": ["edge-node-1"],
                    }],
                }],
            }
        )

    apiVersion = "devices.kubeedge.io/v1alpha2"
    kind = "Device"
    metadata = factory.LazyAttribute(lambda o: {"name": o.name, "namespace": "default"})

    @factory.lazy_attribute
    def spec(self) -> Dict[str, Any]:
        spec = {
            "deviceModelRef": {"name": self.model_name},
            "protocol": self.protocol,
            "nodeSelector": self.node_selector,
            "propertyVisitors": self.visitors,
        }
        if self.data is not None:
            spec["data"] = self.data
        return spec
