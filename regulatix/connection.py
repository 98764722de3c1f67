"""Networked exchange of (tick, value) samples between controller and plant."""

from __future__ import annotations

import ipaddress
import struct
import threading
from dataclasses import dataclass
from enum import Enum
from operator import itemgetter
from typing import Callable, Optional

from regulatix.transport import TcpClient, TcpServer

_MESSAGE = struct.Struct(">Qd")
MESSAGE_SIZE = _MESSAGE.size
_MAX_PORT = 65535
_MAX_TICK = 2**64


class ConnectionRole(Enum):
    """Side this instance plays in a networked simulation."""

    NONE = "none"
    SERVER = "server"
    CLIENT = "client"


@dataclass(frozen=True)
class ConnectionSettings:
    """Parameters chosen for a connection: role, peer address and port."""

    as_server: bool = False
    address: str = "127.0.0.1"
    port: int = 12345

    @property
    def role(self) -> ConnectionRole:
        return ConnectionRole.SERVER if self.as_server else ConnectionRole.CLIENT

    def is_valid(self) -> bool:
        """Port within 0..65535 and, for a client, an IPv4 address."""
        if not 0 <= self.port <= _MAX_PORT:
            return False
        if self.as_server:
            return True
        try:
            ipaddress.IPv4Address(self.address)
        except ValueError:
            return False
        return True


def encode_message(tick: int, value: float) -> bytes:
    """Encode a sample as a big-endian unsigned 64-bit tick and a double."""
    if not 0 <= tick < _MAX_TICK:
        raise ValueError("tick must fit in an unsigned 64-bit integer")
    return _MESSAGE.pack(tick, float(value))


def decode_message(data: bytes) -> tuple[int, float]:
    """Decode the first sample held in ``data``."""
    if len(data) < MESSAGE_SIZE:
        raise ValueError(f"message needs {MESSAGE_SIZE} bytes, got {len(data)}")
    return _MESSAGE.unpack_from(data)


class Connection:
    """Holds one transport and the queue of samples received through it."""

    def __init__(
        self,
        on_message: Optional[Callable[[], None]] = None,
        on_connected: Optional[Callable[[str, int], None]] = None,
        on_disconnected: Optional[Callable[[], None]] = None,
    ) -> None:
        self.on_message = on_message
        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self._role = ConnectionRole.NONE
        self._status = False
        self._server: Optional[TcpServer] = None
        self._client: Optional[TcpClient] = None
        self._values: list[tuple[int, float]] = []
        self._buffer = bytearray()
        self._lock = threading.Lock()

    @property
    def role(self) -> ConnectionRole:
        return self._role

    @property
    def is_connected(self) -> bool:
        return self._status

    @property
    def local_port(self) -> Optional[int]:
        """Port the server side listens on, if acting as server."""
        return self._server.port if self._server is not None else None

    def listen(self, port: int) -> bool:
        """Act as the controller side and wait for a plant on ``port``."""
        if not ConnectionSettings(True, "", port).is_valid():
            raise ValueError(f"invalid port: {port}")
        self.disconnect()
        server = TcpServer(
            on_client_connected=self._handle_connected,
            on_disconnected=self._handle_transport_closed,
            on_message=self.receive,
        )
        listening = server.start_listening(port)
        self._server = server
        self._role = ConnectionRole.SERVER
        self._status = True
        return listening

    def connect_to(self, address: str, port: int) -> None:
        """Act as the plant side and connect to a controller."""
        if not 0 <= port <= _MAX_PORT:
            raise ValueError(f"invalid port: {port}")
        self.disconnect()
        client = TcpClient(
            on_connected=self._handle_connected,
            on_disconnected=self._handle_transport_closed,
            on_message=self.receive,
        )
        self._client = client
        self._role = ConnectionRole.CLIENT
        self._status = True
        try:
            client.connect_to(address, port)
        except OSError:
            self._client = None
            self._role = ConnectionRole.NONE
            self._status = False
            raise

    def disconnect(self) -> None:
        """Close any transport and return to the unconnected state."""
        if self._status:
            self._status = False
            server, self._server = self._server, None
            client, self._client = self._client, None
            if server is not None:
                server.disconnect()
                server.stop_listening()
            if client is not None:
                client.disconnect()
        self._role = ConnectionRole.NONE
        with self._lock:
            self._buffer.clear()
        if self.on_disconnected is not None:
            self.on_disconnected()

    def send(self, tick: int, value: float) -> None:
        """Send a sample to the peer; does nothing when unconnected."""
        message = encode_message(tick, value)
        if self._role is ConnectionRole.SERVER and self._server is not None:
            self._server.send(message)
        elif self._role is ConnectionRole.CLIENT and self._client is not None:
            self._client.send(message)

    def receive(self, data: bytes) -> int:
        """Queue every complete sample in ``data``; returns how many arrived."""
        with self._lock:
            self._buffer.extend(data)
            count = 0
            while len(self._buffer) >= MESSAGE_SIZE:
                self._values.append(decode_message(bytes(self._buffer[:MESSAGE_SIZE])))
                del self._buffer[:MESSAGE_SIZE]
                count += 1
            if count:
                self._values.sort(key=itemgetter(0))
        if self.on_message is not None:
            for _ in range(count):
                self.on_message()
        return count

    def values_available(self) -> bool:
        with self._lock:
            return bool(self._values)

    def pop_values(self) -> tuple[int, float]:
        """Remove and return the queued sample with the lowest tick."""
        with self._lock:
            if not self._values:
                raise IndexError("no values available")
            return self._values.pop(0)

    def last_read_index(self) -> int:
        """Tick of the next queued sample, or 0 when the queue is empty."""
        with self._lock:
            return self._values[0][0] if self._values else 0

    def _handle_connected(self, address: str, port: int) -> None:
        if self.on_connected is not None:
            self.on_connected(address, port)

    def _handle_transport_closed(self) -> None:
        if self._status:
            self.disconnect()