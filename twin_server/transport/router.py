"""
Receive router.

Registered as the transport's receive callback. Parses envelopes and
completes the request waiting for each reply, so the reconciler and
the sync controller can issue request/response calls over a
fire-and-forget transport.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import CollectTimeoutError, DecodeError, TransportError, WriteRejectedError
from ..messages import (
    FrameOperation,
    ObjectAck,
    ObjectMessage,
    PropertyFrame,
    decode_envelope,
    encode_envelope,
)
from .base import Transport

logger = logging.getLogger(__name__)

PushCallback = Callable[[str, PropertyFrame], Awaitable[None]]
ObjectCallback = Callable[[str, ObjectMessage], Awaitable[None]]


class ReceiveRouter:
    """
    Matches replies to pending requests.

    Property replies are matched by ``reply_to``; object acks by the
    id of the acknowledged message. Unsolicited property frames and
    inbound object messages go to optional callbacks.
    """

    def __init__(self, transport: Transport):
        self.transport = transport
        self._pending: Dict[Tuple[str, str], asyncio.Future] = {}
        self._on_push: Optional[PushCallback] = None
        self._on_object: Optional[ObjectCallback] = None
        transport.on_receive(self.handle)

    @property
    def is_online(self) -> bool:
        return self.transport.is_online

    async def wait_online(self) -> None:
        await self.transport.wait_online()

    def set_on_push(self, callback: PushCallback) -> None:
        """Set callback for unsolicited property frames."""
        self._on_push = callback

    def set_on_object(self, callback: ObjectCallback) -> None:
        """Set callback for inbound object messages (edge side)."""
        self._on_object = callback

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def handle(self, target_id: str, payload: bytes) -> None:
        """Transport receive callback."""
        try:
            envelope = decode_envelope(payload)
        except PydanticValidationError as e:
            logger.warning(f"Dropping malformed payload from {target_id}: {e}")
            return

        if isinstance(envelope, PropertyFrame):
            if envelope.reply_to is None:
                if self._on_push:
                    await self._on_push(target_id, envelope)
                else:
                    logger.debug(
                        f"Ignoring unsolicited frame for {envelope.property_name} "
                        f"from {target_id}"
                    )
                return
            self._resolve(target_id, envelope.reply_to, envelope)

        elif isinstance(envelope, ObjectAck):
            self._resolve(target_id, envelope.reply_to, envelope)

        elif isinstance(envelope, ObjectMessage):
            if self._on_object:
                await self._on_object(target_id, envelope)
            else:
                logger.debug(f"No object handler, dropping {envelope.message_id}")

    def _resolve(self, target_id: str, message_id: str, envelope) -> None:
        future = self._pending.pop((target_id, message_id), None)
        if future is None:
            logger.debug(f"Received reply for unknown request {message_id} from {target_id}")
            return
        if not future.done():
            future.set_result(envelope)

    async def send(self, target_id: str, message) -> None:
        """Send an envelope without waiting for a reply."""
        await self.transport.send(target_id, encode_envelope(message))

    async def request(self, target_id: str, message, message_id: str, timeout: float):
        """
        Send an envelope and wait for the reply addressed to it.

        Raises:
            TransportError: If the transport could not deliver.
            asyncio.TimeoutError: If no reply arrives in time.
        """
        key = (target_id, message_id)
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            await self.transport.send(target_id, encode_envelope(message))
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            self._pending.pop(key, None)

    # ------------------------------------------------------------------
    # Property access
    # ------------------------------------------------------------------

    async def read_property(self, target_id: str, property_name: str, timeout: float) -> bytes:
        """
        Collect the raw bytes of one property.

        Raises:
            CollectTimeoutError: If the device does not answer in time.
            DecodeError: If the device answers with an error frame.
            TransportError: If the request cannot be delivered.
        """
        frame = PropertyFrame.read_request(property_name)
        try:
            reply = await self.request(target_id, frame, frame.message_id, timeout)
        except asyncio.TimeoutError:
            raise CollectTimeoutError(target_id, property_name, timeout)

        if reply.operation == FrameOperation.ERROR:
            raise DecodeError(
                f"Device {target_id} failed to read '{property_name}': {reply.error}",
                details={"target_id": target_id, "property": property_name},
            )
        if reply.operation != FrameOperation.DATA:
            raise DecodeError(
                f"Unexpected '{reply.operation.value}' reply to read of '{property_name}'"
            )
        try:
            return reply.raw
        except ValueError as e:
            raise DecodeError(
                f"Device {target_id} sent malformed data for '{property_name}': {e}",
                details={"target_id": target_id, "property": property_name},
            )

    async def write_property(
        self,
        target_id: str,
        property_name: str,
        raw: bytes,
        timeout: float,
    ) -> None:
        """
        Write raw bytes to one property and wait for the device ack.

        Raises:
            WriteRejectedError: If the device refuses or does not ack in time.
            TransportError: If the request cannot be delivered.
        """
        frame = PropertyFrame.write_request(property_name, raw)
        try:
            reply = await self.request(target_id, frame, frame.message_id, timeout)
        except asyncio.TimeoutError:
            raise WriteRejectedError(target_id, property_name, f"no ack within {timeout}s")

        if reply.operation != FrameOperation.ACK:
            raise WriteRejectedError(
                target_id, property_name, reply.error or reply.operation.value
            )

    # ------------------------------------------------------------------
    # Object sync
    # ------------------------------------------------------------------

    async def send_object(self, target_id: str, message: ObjectMessage, timeout: float) -> ObjectAck:
        """
        Deliver an object message and wait for the edge ack.

        Raises:
            TransportError: If delivery fails or no ack arrives in time.
        """
        try:
            return await self.request(target_id, message, message.message_id, timeout)
        except asyncio.TimeoutError:
            raise TransportError(
                f"No ack for {message.object_type}/{message.object_name} "
                f"v{message.resource_version} within {timeout}s",
                target_id=target_id,
            )

    def cancel_all(self) -> None:
        """Cancel every pending request."""
        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()
