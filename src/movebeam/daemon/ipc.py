"""IPC (Inter-Process Communication) for daemon-client communication.

Messages travel over Unix domain sockets as frames: the payload encoded as
unpadded base64url followed by a newline. Newline is outside the base64url
alphabet, so frames need no length prefix. A connection carries any number
of request/response frames in sequence. A frame holding only the newline
means "no response".
"""

import base64
import binascii
import logging
import socket
import string
import threading
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[bytes], Optional[bytes]]


class IPCError(Exception):
    """IPC communication error."""

    pass


class ProtocolError(IPCError):
    """Malformed frame or message."""

    pass


class ServerError(IPCError):
    """The server answered with an empty frame (no response produced)."""

    pass


class FrameCodec:
    """Frame encoding: unpadded base64url terminated by a delimiter byte."""

    DELIMITER = b"\n"
    MAX_FRAME_SIZE = 1 << 20
    _ALPHABET = string.ascii_letters.encode() + string.digits.encode() + b"-_"

    @classmethod
    def encode(cls, payload: bytes) -> bytes:
        """Encode a payload into a complete frame (delimiter included)."""
        return base64.urlsafe_b64encode(payload).rstrip(b"=") + cls.DELIMITER

    @classmethod
    def decode(cls, frame: bytes) -> bytes:
        """Decode a frame body (delimiter already stripped).

        Raises:
            ProtocolError: If the frame is not valid unpadded base64url
        """
        if frame.endswith(cls.DELIMITER):
            frame = frame[: -len(cls.DELIMITER)]
        # b64decode accepts the standard alphabet alongside altchars
        if frame.translate(None, cls._ALPHABET):
            raise ProtocolError("Invalid frame encoding: unexpected characters")
        padded = frame + b"=" * (-len(frame) % 4)
        try:
            return base64.b64decode(padded, altchars=b"-_", validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProtocolError(f"Invalid frame encoding: {e}")


class FrameReader:
    """Splits the byte stream of a socket into delimiter-terminated frames."""

    def __init__(self, sock: socket.socket, should_stop: Optional[Callable[[], bool]] = None):
        """Initialize frame reader.

        Args:
            sock: Connected socket
            should_stop: Polled whenever a read times out; reading is
                abandoned once it returns True. Without it a timeout
                propagates to the caller.
        """
        self._sock = sock
        self._should_stop = should_stop
        self._buffer = b""

    def read_frame(self) -> Optional[bytes]:
        """Read the next frame body.

        Returns:
            Frame bytes without the delimiter, or None at end of stream
            (bytes after the last delimiter are discarded)

        Raises:
            ProtocolError: If a frame grows past ``FrameCodec.MAX_FRAME_SIZE``
            OSError: On socket failure
        """
        while True:
            index = self._buffer.find(FrameCodec.DELIMITER)
            if index >= 0:
                frame = self._buffer[:index]
                self._buffer = self._buffer[index + len(FrameCodec.DELIMITER) :]
                return frame

            if len(self._buffer) > FrameCodec.MAX_FRAME_SIZE:
                raise ProtocolError("Frame too large")

            try:
                chunk = self._sock.recv(4096)
            except socket.timeout:
                if self._should_stop is None:
                    raise
                if self._should_stop():
                    return None
                continue

            if not chunk:
                if self._buffer:
                    logger.debug(f"Discarding {len(self._buffer)} bytes of truncated frame")
                    self._buffer = b""
                return None
            self._buffer += chunk


class IPCServer:
    """IPC server for handling client requests over a Unix socket."""

    def __init__(
        self,
        socket_path: Path,
        handler: Handler,
        shutdown_event: Optional[threading.Event] = None,
        world_writable: bool = False,
        poll_interval: float = 1.0,
    ):
        """Initialize IPC server.

        Args:
            socket_path: Path of the socket file
            handler: Called with each decoded request payload; returns the
                response payload, or None for "no response"
            shutdown_event: Stops the accept loop and connections when set
            world_writable: Let other users connect (mode 0o722)
            poll_interval: How often blocking calls check for shutdown (seconds)
        """
        self.socket_path = socket_path
        self.handler = handler
        self.shutdown_event = shutdown_event or threading.Event()
        self.world_writable = world_writable
        self.poll_interval = poll_interval
        self.socket: Optional[socket.socket] = None
        self.running = False
        self._server_thread: Optional[threading.Thread] = None

    def __enter__(self) -> "IPCServer":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Bind the socket and start accepting connections.

        Raises:
            IPCError: If the runtime directory or socket cannot be created
        """
        if self.running:
            logger.warning("IPC server already running")
            return

        try:
            self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IPCError(f"Failed to create runtime directory {self.socket_path.parent}: {e}")

        # Clean up any existing socket
        if self.socket_path.exists() or self.socket_path.is_symlink():
            logger.warning(f"Removing existing socket '{self.socket_path}'")
            try:
                self.socket_path.unlink()
            except OSError as e:
                raise IPCError(f"Failed to remove existing socket: {e}")

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(self.socket_path))
            sock.listen(5)
            self.socket_path.chmod(0o722 if self.world_writable else 0o600)
        except OSError as e:
            sock.close()
            self._remove_socket_file()
            raise IPCError(f"Failed to bind socket at {self.socket_path}: {e}")

        self.socket = sock
        self.running = True
        self._server_thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._server_thread.start()
        logger.info(f"Started socket at '{self.socket_path}'")

    def _should_stop(self) -> bool:
        return not self.running or self.shutdown_event.is_set()

    def _accept_loop(self) -> None:
        """Accept client connections until shutdown."""
        while not self._should_stop():
            try:
                if self.socket is None:
                    break

                self.socket.settimeout(self.poll_interval)
                try:
                    client_socket, _ = self.socket.accept()
                except socket.timeout:
                    continue

                # Handle client in separate thread
                client_thread = threading.Thread(
                    target=self._handle_client, args=(client_socket,), daemon=True
                )
                client_thread.start()
            except OSError as e:
                if not self._should_stop():  # Only log if not shutting down
                    logger.error(f"Error in accept loop: {e}")

    def _handle_client(self, client_socket: socket.socket) -> None:
        """Serve request frames from one connection until the peer closes it.

        Args:
            client_socket: Client socket
        """
        client_socket.settimeout(self.poll_interval)
        reader = FrameReader(client_socket, should_stop=self._should_stop)
        try:
            while True:
                frame = reader.read_frame()
                if frame is None:
                    break

                try:
                    payload = FrameCodec.decode(frame)
                except ProtocolError as e:
                    logger.warning(f"Dropping connection: {e}")
                    client_socket.sendall(FrameCodec.DELIMITER)
                    break

                response = self._dispatch(payload)
                if response:
                    client_socket.sendall(FrameCodec.encode(response))
                else:
                    client_socket.sendall(FrameCodec.DELIMITER)
        except ProtocolError as e:
            logger.warning(f"Dropping connection: {e}")
        except OSError as e:
            logger.error(f"Error handling client: {e}")
        finally:
            client_socket.close()

    def _dispatch(self, payload: bytes) -> Optional[bytes]:
        try:
            return self.handler(payload)
        except Exception as e:
            logger.error(f"Failed to handle request: {e}")
            return None

    def stop(self) -> None:
        """Stop the server and remove the socket file."""
        if not self.running:
            self._remove_socket_file()
            return

        logger.info("Stopping IPC server...")
        self.running = False

        if self.socket:
            self.socket.close()
            self.socket = None

        if self._server_thread and self._server_thread is not threading.current_thread():
            self._server_thread.join(timeout=2.0 + self.poll_interval)

        self._remove_socket_file()
        logger.info("IPC server stopped")

    def _remove_socket_file(self) -> None:
        try:
            if self.socket_path.exists() or self.socket_path.is_symlink():
                self.socket_path.unlink()
        except OSError as e:
            logger.error(f"Failed to remove socket {self.socket_path}: {e}")


class IPCClient:
    """IPC client for communicating with a daemon.

    With ``persistent=True`` one connection is kept open and reused for
    every call until ``close()``; otherwise each call connects, exchanges
    one frame pair and disconnects.
    """

    def __init__(self, socket_path: Path, timeout: float = 5.0, persistent: bool = False):
        """Initialize IPC client.

        Args:
            socket_path: Path of the daemon socket
            timeout: Connect/read timeout in seconds
            persistent: Keep the connection open between calls
        """
        self.socket_path = socket_path
        self.timeout = timeout
        self.persistent = persistent
        self._socket: Optional[socket.socket] = None
        self._reader: Optional[FrameReader] = None

    def __enter__(self) -> "IPCClient":
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def connect(self) -> None:
        """Open the connection.

        Raises:
            IPCError: If the daemon cannot be reached
        """
        if self._socket is not None:
            return

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(str(self.socket_path))
        except OSError as e:
            sock.close()
            raise IPCError(f"Failed to connect to {self.socket_path}: {e}")
        self._socket = sock
        self._reader = FrameReader(sock)

    def send(self, payload: bytes) -> bytes:
        """Send one request payload and wait for its response.

        Args:
            payload: Raw request bytes

        Returns:
            Raw response bytes

        Raises:
            ServerError: If the server produced no response
            IPCError: If communication fails
        """
        self.connect()
        if self._socket is None or self._reader is None:
            raise IPCError(f"Not connected to {self.socket_path}")

        try:
            self._socket.sendall(FrameCodec.encode(payload))
            frame = self._reader.read_frame()
        except ProtocolError:
            self.close()
            raise
        except OSError as e:
            self.close()
            raise IPCError(f"Failed to communicate with daemon: {e}")

        if not self.persistent:
            self.close()

        if frame is None:
            self.close()
            raise IPCError("Connection closed by daemon")
        if not frame:
            raise ServerError("Daemon failed to handle the request")
        return FrameCodec.decode(frame)

    def close(self) -> None:
        """Half-close the write side so the server sees end of stream, then close."""
        if self._socket is None:
            return
        try:
            self._socket.shutdown(socket.SHUT_WR)
        except OSError as e:
            logger.debug(f"Shutdown of write side failed: {e}")
        self._socket.close()
        self._socket = None
        self._reader = None
