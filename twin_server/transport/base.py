"""
Transport boundary.

The twin server never manages connections itself. A transport delivers
opaque payloads to an edge target (a device or an edge node), hands
received payloads to one callback and reports liveness.
"""
from typing import Awaitable, Callable, Protocol, runtime_checkable

ReceiveCallback = Callable[[str, bytes], Awaitable[None]]


@runtime_checkable
class Transport(Protocol):
    """
    Asynchronous message transport.

    Implementations raise ``TransportError`` from ``send`` when a
    payload cannot be delivered.
    """

    @property
    def is_online(self) -> bool:
        ...

    async def send(self, target_id: str, payload: bytes) -> None:
        ...

    def on_receive(self, callback: ReceiveCallback) -> None:
        ...

    async def wait_online(self) -> None:
        ...
