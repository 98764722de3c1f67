"""Point-to-point TCP transport: a single-peer server and a client."""

from __future__ import annotations

import socket
import threading
from typing import Callable, Optional

_READ_SIZE = 4096
_POLL_INTERVAL = 0.1
_JOIN_TIMEOUT = 2.0
_CONNECT_TIMEOUT = 5.0
_DEFAULT_PORT = 12345

ConnectedCallback = Callable[[str, int], None]
ClosedCallback = Callable[[], None]
MessageCallback = Callable[[bytes], None]


def _close_socket(sock: Optional[socket.socket]) -> None:
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()


def _join(thread: Optional[threading.Thread]) -> None:
    if thread is not None and thread is not threading.current_thread():
        thread.join(_JOIN_TIMEOUT)


def _read_loop(
    sock: socket.socket,
    stop: threading.Event,
    on_data: Callable[[bytes], None],
    on_closed: Callable[[], None],
) -> None:
    """Deliver received chunks until the peer closes or ``stop`` is set."""
    while not stop.is_set():
        try:
            chunk = sock.recv(_READ_SIZE)
        except socket.timeout:
            continue
        except OSError:
            break
        if not chunk:
            break
        on_data(chunk)
    if not stop.is_set():
        on_closed()


class TcpClient:
    """TCP client that reports connection, data and disconnection by callbacks."""

    def __init__(
        self,
        on_connected: Optional[ConnectedCallback] = None,
        on_disconnected: Optional[ClosedCallback] = None,
        on_message: Optional[MessageCallback] = None,
    ) -> None:
        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self.on_message = on_message
        self.address = "127.0.0.1"
        self.port = _DEFAULT_PORT
        self._lock = threading.Lock()
        self._sock: Optional[socket.socket] = None
        self._stop = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect_to(self, address: str, port: int) -> None:
        """Connect to ``address:port``; raises ``OSError`` when that fails."""
        if self._connected:
            self.disconnect()
        self.address = address
        self.port = port
        sock = socket.create_connection((address, port), timeout=_CONNECT_TIMEOUT)
        sock.settimeout(_POLL_INTERVAL)
        stop = threading.Event()
        with self._lock:
            self._sock = sock
            self._stop = stop
            self._connected = True
        self._reader = threading.Thread(
            target=_read_loop,
            args=(sock, stop, self._deliver, self._peer_closed),
            daemon=True,
        )
        self._reader.start()
        if self.on_connected is not None:
            self.on_connected(f"Client {address}", port)

    def send(self, data: bytes) -> None:
        """Send ``data`` to the server."""
        with self._lock:
            sock = self._sock
        if sock is None:
            raise ConnectionError("client is not connected")
        sock.sendall(bytes(data))

    def disconnect(self) -> bool:
        """Close the connection; returns whether one was open."""
        with self._lock:
            if not self._connected:
                return False
            self._connected = False
            sock, self._sock = self._sock, None
            self._stop.set()
        _close_socket(sock)
        _join(self._reader)
        self._reader = None
        if self.on_disconnected is not None:
            self.on_disconnected()
        return True

    def _deliver(self, chunk: bytes) -> None:
        if self.on_message is not None:
            self.on_message(chunk)

    def _peer_closed(self) -> None:
        self.disconnect()


class TcpServer:
    """TCP server that serves one peer at a time."""

    def __init__(
        self,
        on_client_connected: Optional[ConnectedCallback] = None,
        on_disconnected: Optional[ClosedCallback] = None,
        on_message: Optional[MessageCallback] = None,
    ) -> None:
        self.on_client_connected = on_client_connected
        self.on_disconnected = on_disconnected
        self.on_message = on_message
        self._requested_port = _DEFAULT_PORT
        self._lock = threading.Lock()
        self._listener: Optional[socket.socket] = None
        self._listen_stop = threading.Event()
        self._acceptor: Optional[threading.Thread] = None
        self._client: Optional[socket.socket] = None
        self._client_stop = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._connected = False

    @property
    def is_listening(self) -> bool:
        return self._listener is not None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def port(self) -> int:
        """The bound port while listening, otherwise the requested one."""
        listener = self._listener
        if listener is not None:
            return listener.getsockname()[1]
        return self._requested_port

    def start_listening(self, port: int) -> bool:
        """Listen on all interfaces at ``port``; returns whether listening."""
        if self._listener is not None:
            return True
        if port != self._requested_port:
            self.stop_listening()
            self._requested_port = port
        try:
            listener = socket.create_server(("", port))
        except OSError:
            return False
        listener.settimeout(_POLL_INTERVAL)
        stop = threading.Event()
        self._listener = listener
        self._listen_stop = stop
        self._acceptor = threading.Thread(
            target=self._accept_loop, args=(listener, stop), daemon=True
        )
        self._acceptor.start()
        return True

    def stop_listening(self) -> None:
        """Stop accepting new peers; an established peer stays connected."""
        listener, self._listener = self._listener, None
        if listener is None:
            return
        self._listen_stop.set()
        listener.close()
        _join(self._acceptor)
        self._acceptor = None

    def send(self, data: bytes) -> None:
        """Send ``data`` to the connected peer, if there is one."""
        with self._lock:
            client = self._client
        if client is not None:
            client.sendall(bytes(data))

    def disconnect(self) -> bool:
        """Drop the connected peer; returns whether one was connected."""
        with self._lock:
            if not self._connected:
                return False
            self._connected = False
            client, self._client = self._client, None
            self._client_stop.set()
        _close_socket(client)
        _join(self._reader)
        self._reader = None
        if self.on_disconnected is not None:
            self.on_disconnected()
        return True

    def _accept_loop(self, listener: socket.socket, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                conn, peer = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            self._adopt(conn, peer)

    def _adopt(self, conn: socket.socket, peer: tuple) -> None:
        conn.settimeout(_POLL_INTERVAL)
        stop = threading.Event()
        with self._lock:
            if self._client is not None:
                _close_socket(conn)
                return
            self._client = conn
            self._client_stop = stop
            self._connected = True
        self._reader = threading.Thread(
            target=_read_loop,
            args=(conn, stop, self._deliver, self._peer_closed),
            daemon=True,
        )
        self._reader.start()
        if self.on_client_connected is not None:
            self.on_client_connected(f"Server {peer[0]}", peer[1])

    def _deliver(self, chunk: bytes) -> None:
        if self.on_message is not None:
            self.on_message(chunk)

    def _peer_closed(self) -> None:
        self.disconnect()