"""
Wire envelopes and status messages.

Frames exchanged with the edge travel as JSON encoded bytes over the
transport. Every envelope carries a ``kind`` discriminator so a single
receive callback can route property frames and object traffic.
"""
import time
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def new_message_id() -> str:
    return uuid4().hex


# ---------------------------------------------------------------------------
# Twin values and status
# ---------------------------------------------------------------------------

class ValueMetadata(BaseModel):
    """Metadata attached to a desired or reported value."""
    timestamp: int = Field(default_factory=now_ms)
    type: Optional[str] = None


class TwinValue(BaseModel):
    """Canonical string value plus metadata."""
    value: Optional[str] = None
    metadata: ValueMetadata = Field(default_factory=ValueMetadata)


class TwinPropertyStatus(BaseModel):
    """Desired/reported pair of one property with its health."""
    property_name: str
    desired: Optional[TwinValue] = None
    reported: Optional[TwinValue] = None
    phase: str
    error: Optional[str] = None
    data_topic: Optional[str] = None


class DeviceStatusUpdate(BaseModel):
    """Snapshot published on a device status stream."""
    device_id: str
    namespace: str = "default"
    twins: List[TwinPropertyStatus] = Field(default_factory=list)
    timestamp: int = Field(default_factory=now_ms)

    def get_twin(self, property_name: str) -> Optional[TwinPropertyStatus]:
        for twin in self.twins:
            if twin.property_name == property_name:
                return twin
        return None


class WriteResult(BaseModel):
    """Accept/reject outcome of a desired write request."""
    device_id: str
    property_name: str
    accepted: bool
    desired: Optional[str] = None
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Property frames
# ---------------------------------------------------------------------------

class FrameOperation(str, Enum):
    """Operations carried by a property frame."""
    READ = "read"
    WRITE = "write"
    DATA = "data"
    ACK = "ack"
    ERROR = "error"


class PropertyFrame(BaseModel):
    """
    Request or response for one device property.

    ``data`` holds raw wire bytes as lowercase hex. Responses set
    ``reply_to`` to the request's ``message_id``; frames without it
    are unsolicited pushes from the device.
    """
    kind: Literal["property"] = "property"
    message_id: str = Field(default_factory=new_message_id)
    reply_to: Optional[str] = None
    operation: FrameOperation
    property_name: str
    data: Optional[str] = None
    error: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)

    @property
    def raw(self) -> bytes:
        return bytes.fromhex(self.data) if self.data else b""

    @classmethod
    def read_request(cls, property_name: str) -> "PropertyFrame":
        return cls(operation=FrameOperation.READ, property_name=property_name)

    @classmethod
    def write_request(cls, property_name: str, raw: bytes) -> "PropertyFrame":
        return cls(
            operation=FrameOperation.WRITE,
            property_name=property_name,
            data=raw.hex(),
        )

    def reply(
        self,
        operation: FrameOperation,
        raw: Optional[bytes] = None,
        error: Optional[str] = None,
    ) -> "PropertyFrame":
        """Build the response to this request."""
        return PropertyFrame(
            reply_to=self.message_id,
            operation=operation,
            property_name=self.property_name,
            data=raw.hex() if raw is not None else None,
            error=error,
        )


# ---------------------------------------------------------------------------
# Object sync
# ---------------------------------------------------------------------------

class ObjectOperation(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


class ObjectMessage(BaseModel):
    """A cloud object mutation delivered to an edge target."""
    kind: Literal["object"] = "object"
    message_id: str = Field(default_factory=new_message_id)
    operation: ObjectOperation
    object_type: str
    object_name: str
    namespace: Optional[str] = None
    cluster: Optional[str] = None
    resource_version: int
    body: Dict[str, Any] = Field(default_factory=dict)


class ObjectAck(BaseModel):
    """Edge acknowledgement of an object message."""
    kind: Literal["object_ack"] = "object_ack"
    reply_to: str
    applied: bool = True
    duplicate: bool = False
    error: Optional[str] = None


Envelope = Annotated[
    Union[PropertyFrame, ObjectMessage, ObjectAck],
    Field(discriminator="kind"),
]

_envelope_adapter = TypeAdapter(Envelope)


def encode_envelope(message: Envelope) -> bytes:
    """Serialize an envelope to transport bytes."""
    return message.model_dump_json().encode("utf-8")


def decode_envelope(payload: bytes) -> Envelope:
    """
    Parse transport bytes into an envelope.

    Raises:
        pydantic.ValidationError: If the payload is not a known envelope.
    """
    return _envelope_adapter.validate_json(payload)
