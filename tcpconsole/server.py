"""
TCP Server - reference server component driven by the operator console.

Handles:
1. Plaintext or TLS listeners (TLS key material from a PKCS#12 bundle)
2. Optional preshared-key check on each new connection
3. Per-client reader threads delivering connect/message/disconnect callbacks
4. Sending to and disconnecting clients by their "ip:port" identity

Received data is delivered exactly as each recv() returns it; there is no
message framing.
"""

import logging
import socket
import ssl
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Set, Tuple

from tcpconsole.common.utils import constant_time_compare, format_ip_port
from tcpconsole.crypto.pki import build_server_context

logger = logging.getLogger(__name__)

PRESHARED_KEY_LENGTH = 16
AUTH_OK = b"AUTH_OK\n"
RECV_BUFFER_SIZE = 65536
ACCEPT_TIMEOUT = 1.0
AUTH_TIMEOUT = 10.0

ConnectionCallback = Callable[[str], None]
MessageCallback = Callable[[str, bytes], None]


class ServerError(Exception):
    """Raised when the server cannot be started."""
    pass


class ClientConnection:
    """A single accepted connection and its reader thread."""

    def __init__(self, server: "TcpServer", conn: socket.socket, addr: Tuple[str, int]):
        """
        Initialize a client connection.

        Args:
            server: Owning server
            conn: Accepted (possibly TLS-wrapped) socket
            addr: Peer address tuple (host, port)
        """
        self.server = server
        self.conn = conn
        self.addr = addr
        self.ip_port = format_ip_port(addr)
        self.connected = False
        self.closed = False
        self._send_lock = threading.Lock()

    def send(self, data: bytes) -> bool:
        """
        Send raw bytes to the client.

        Returns:
            True if successful, False otherwise
        """
        try:
            with self._send_lock:
                self.conn.sendall(data)
            self.server._log_debug(f"[{self.ip_port}] Sent {len(data)} bytes")
            return True
        except OSError as e:
            logger.error(f"[{self.ip_port}] Failed to send data: {e}")
            return False

    def close(self):
        """Close the socket; the reader thread notices and exits."""
        if self.closed:
            return
        self.closed = True
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.conn.close()

    def _recv_exact(self, size: int) -> bytes:
        data = b''
        while len(data) < size:
            chunk = self.conn.recv(size - len(data))
            if not chunk:
                break
            data += chunk
        return data

    def _handshake(self) -> bool:
        if isinstance(self.conn, ssl.SSLSocket):
            try:
                self.conn.settimeout(AUTH_TIMEOUT)
                self.conn.do_handshake()
                self.server._log_debug(f"[{self.ip_port}] TLS established ({self.conn.version()})")
            except (ssl.SSLError, OSError) as e:
                logger.warning(f"[{self.ip_port}] TLS handshake failed: {e}")
                return False

        # Snapshot so a key rotated mid-handshake applies to the next client
        key = self.server.preshared_key
        if key:
            try:
                self.conn.settimeout(AUTH_TIMEOUT)
                offered = self._recv_exact(len(key.encode('utf-8')))
            except OSError as e:
                logger.warning(f"[{self.ip_port}] Authentication read failed: {e}")
                return False
            if not constant_time_compare(offered, key):
                logger.warning(f"[{self.ip_port}] Preshared key rejected")
                return False
            if not self.send(AUTH_OK):
                return False
            self.server._log_debug(f"[{self.ip_port}] Preshared key accepted")

        self.conn.settimeout(None)
        return True

    def handle_client(self):
        """
        Main client connection handler.

        Flow:
        1. TLS handshake (TLS listeners only)
        2. Preshared-key check (when a key is set)
        3. Register and fire the connected callback
        4. Deliver each received chunk to the message callback
        5. Unregister and fire the disconnected callback
        """
        try:
            if not self._handshake():
                return

            if not self.server._register(self):
                self.server._log_debug(f"[{self.ip_port}] Server disposed during handshake")
                return
            self.connected = True
            self.server._fire(self.server.on_connected, self.ip_port)

            while not self.closed:
                try:
                    data = self.conn.recv(RECV_BUFFER_SIZE)
                except OSError as e:
                    if not self.closed:
                        self.server._log_debug(f"[{self.ip_port}] Receive failed: {e}")
                    break
                if not data:
                    self.server._log_debug(f"[{self.ip_port}] Connection closed by client")
                    break
                self.server._log_debug(f"[{self.ip_port}] Received {len(data)} bytes")
                self.server._fire(self.server.on_message, self.ip_port, data)

        except Exception as e:
            logger.error(f"[{self.ip_port}] Error handling client: {e}")
        finally:
            self.close()
            self.server._unregister(self)
            if self.connected:
                self.server._fire(self.server.on_disconnected, self.ip_port)


class TcpServer:
    """
    TCP server with optional TLS and preshared-key authentication.

    Construct with (ip, port) for plaintext or (ip, port, cert_file,
    cert_password) for TLS. Handlers must be registered before start().
    """

    def __init__(
        self,
        ip: str,
        port: int,
        cert_file: Optional[str] = None,
        cert_password: Optional[str] = None
    ):
        """
        Initialize the server.

        Args:
            ip: Server bind address
            port: Server bind port (0 picks a free port)
            cert_file: PKCS#12 bundle path; enables TLS
            cert_password: PKCS#12 bundle password
        """
        self.ip = ip
        self.port = port
        self.cert_file = cert_file
        self.cert_password = cert_password
        self.ssl = cert_file is not None

        self.accept_invalid_certificates = True
        self.mutually_authenticate = False
        self.debug = False
        self._preshared_key: Optional[str] = None

        self.on_connected: Optional[ConnectionCallback] = None
        self.on_disconnected: Optional[ConnectionCallback] = None
        self.on_message: Optional[MessageCallback] = None

        self._clients: Dict[str, ClientConnection] = {}
        # Accepted but still in the TLS/preshared-key handshake
        self._pending: Set[ClientConnection] = set()
        self._lock = threading.Lock()
        self._listener: Optional[socket.socket] = None
        self._running = threading.Event()
        self._started = False
        self._disposed = False
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="tcpserver-send")

    @property
    def preshared_key(self) -> Optional[str]:
        return self._preshared_key

    @preshared_key.setter
    def preshared_key(self, value: Optional[str]):
        if value is not None and len(value.encode('utf-8')) != PRESHARED_KEY_LENGTH:
            raise ValueError(f"Preshared key must be exactly {PRESHARED_KEY_LENGTH} bytes in UTF-8")
        self._preshared_key = value
        self._log_debug("Preshared key updated")

    @property
    def bound_port(self) -> int:
        """Port actually listened on (differs from port when port is 0)."""
        if self._listener is None:
            return self.port
        return self._listener.getsockname()[1]

    def register_handlers(
        self,
        on_connected: Optional[ConnectionCallback] = None,
        on_disconnected: Optional[ConnectionCallback] = None,
        on_message: Optional[MessageCallback] = None
    ):
        """Register event callbacks. They run on the client reader threads."""
        if self._started:
            logger.warning("Handlers registered after start; earlier events were not delivered")
        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self.on_message = on_message

    def start(self) -> Future:
        """
        Bind, listen and run the accept loop on a background thread.

        Returns:
            Future resolved when the accept loop exits

        Raises:
            ServerError if the server was disposed, already started or
            cannot bind; CertificateLoadError for a bad TLS bundle
        """
        if self._disposed:
            raise ServerError("Server has been disposed")
        if self._started:
            raise ServerError("Server already started")

        context = None
        if self.ssl:
            context = build_server_context(
                self.cert_file,
                self.cert_password,
                mutually_authenticate=self.mutually_authenticate,
                accept_invalid_certificates=self.accept_invalid_certificates
            )

        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self.ip, self.port))
            listener.listen(5)
            listener.settimeout(ACCEPT_TIMEOUT)
        except OSError as e:
            listener.close()
            raise ServerError(f"Unable to listen on {self.ip}:{self.port}: {e}")

        self._listener = listener
        self._started = True
        self._running.set()
        logger.info(f"Server listening on {self.ip}:{self.bound_port}{' (TLS)' if self.ssl else ''}")

        future: Future = Future()
        future.set_running_or_notify_cancel()
        thread = threading.Thread(
            target=self._accept_loop,
            args=(listener, context, future),
            name="tcpserver-accept",
            daemon=True
        )
        thread.start()
        return future

    def _accept_loop(self, listener: socket.socket, context: Optional[ssl.SSLContext], future: Future):
        try:
            while self._running.is_set():
                try:
                    conn, addr = listener.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if not self._running.is_set():
                        break
                    logger.error(f"Error accepting connection: {e}")
                    continue

                conn.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
                conn.settimeout(None)
                if context is not None:
                    conn = context.wrap_socket(conn, server_side=True, do_handshake_on_connect=False)

                client = ClientConnection(self, conn, addr)
                with self._lock:
                    if self._disposed:
                        client.close()
                        break
                    self._pending.add(client)
                self._log_debug(f"[{client.ip_port}] Accepted connection")
                threading.Thread(
                    target=client.handle_client,
                    name=f"client-{client.ip_port}",
                    daemon=True
                ).start()

            logger.info("Server stopped")
            future.set_result(None)
        except Exception as e:
            logger.error(f"Server error: {e}")
            future.set_exception(e)

    def list_clients(self) -> List[str]:
        """Identities of connected clients, in connection order."""
        with self._lock:
            return list(self._clients.keys())

    def send(self, ip_port: str, data: bytes) -> bool:
        """
        Send data to a connected client.

        Returns:
            True if sent, False for unknown clients or socket errors
        """
        with self._lock:
            client = self._clients.get(ip_port)
        if client is None:
            self._log_debug(f"Send failed, unknown client: {ip_port}")
            return False
        return client.send(data)

    def send_async(self, ip_port: str, data: bytes) -> Future:
        """Send on a worker thread. Returns a Future resolving to the send result."""
        if self._disposed:
            future: Future = Future()
            future.set_result(False)
            return future
        return self._executor.submit(self.send, ip_port, data)

    def disconnect_client(self, ip_port: Optional[str]):
        """Close a client's connection. Unknown or empty identities are ignored."""
        if not ip_port:
            return
        with self._lock:
            client = self._clients.get(ip_port)
        if client is None:
            self._log_debug(f"Disconnect ignored, unknown client: {ip_port}")
            return
        logger.info(f"[{ip_port}] Disconnecting client")
        client.close()

    def dispose(self):
        """Stop listening and close every connection. Safe to call twice."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            clients = list(self._clients.values()) + list(self._pending)
            self._clients.clear()
            self._pending.clear()
        self._running.clear()

        if self._listener is not None:
            self._listener.close()

        for client in clients:
            client.close()

        self._executor.shutdown(wait=False)
        logger.info("Server disposed")

    def _register(self, client: ClientConnection) -> bool:
        """Move a client from pending to connected. False once disposed."""
        with self._lock:
            self._pending.discard(client)
            if self._disposed:
                return False
            self._clients[client.ip_port] = client
            return True

    def _unregister(self, client: ClientConnection):
        with self._lock:
            self._pending.discard(client)
            # A newer connection may already hold the same identity string
            if self._clients.get(client.ip_port) is client:
                del self._clients[client.ip_port]

    def _fire(self, callback: Optional[Callable], *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Event handler {getattr(callback, '__name__', callback)} failed: {e}")

    def _log_debug(self, message: str):
        if self.debug:
            logger.info(f"[debug] {message}")
