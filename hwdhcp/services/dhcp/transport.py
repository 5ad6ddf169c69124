import socket
from abc import ABC, abstractmethod
from logging import Logger
from queue import Empty, Full, Queue
from threading import RLock, Thread
from typing import Protocol

from hwdhcp.models.models import ClientMessage, MalformedPacketError, ReplyMessage
from hwdhcp.services.dhcp.codec import PacketCodec

BROADCAST_IP = "255.255.255.255"
NO_IP_ASSIGNED = "0.0.0.0"
MAX_DATAGRAM_SIZE = 1500
SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)


class MessageDispatcher(Protocol):
    def dispatch(self, message: ClientMessage) -> ReplyMessage | None: ...


class Listener(ABC):
    """Bound endpoint delivering decoded messages to a dispatcher."""

    @abstractmethod
    def serve(self, handler: MessageDispatcher) -> None:
        """Block, dispatching every datagram, until close() is called."""

    @abstractmethod
    def close(self) -> None:
        """Stop serving and release the endpoint."""


class Transport(ABC):
    """Opens listeners."""

    @abstractmethod
    def listen(self, port: int, interface: str | None = None) -> Listener:
        """Open a listener on port, optionally bound to one network interface."""


def reply_address(message: ClientMessage, source: tuple[str, int]) -> tuple[str, int]:
    """Destination of a reply: the requester, or broadcast when it has no address yet."""
    _host, _port = source[0], source[1]
    if _host == NO_IP_ASSIGNED or message.is_broadcast:
        return (BROADCAST_IP, _port)
    return (_host, _port)


class UDPListener(Listener):
    """Receive loop feeding a bounded queue drained by worker threads."""

    def __init__(
        self,
        sock: socket.socket,
        codec: PacketCodec,
        logger: Logger,
        workers: int = 2,
        queue_size: int = 100,
        worker_get_timeout: float = 0.5,
        worker_join_timeout: float = 2.0,
    ):
        self._lock = RLock()
        self._sock = sock
        self._codec = codec
        self.logger = logger
        self._workers = workers
        self._worker_get_timeout = worker_get_timeout
        self._worker_join_timeout = worker_join_timeout
        self._received_queue: Queue = Queue(maxsize=queue_size)
        self._running = False
        self._serving = False
        self._closed = False

    @property
    def address(self) -> tuple[str, int]:
        return self._sock.getsockname()

    @property
    def running(self) -> bool:
        return self._running

    def serve(self, handler: MessageDispatcher) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Listener closed.")
            if self._serving:
                raise RuntimeError("Listener already serving.")
            self._serving = True
            self._running = True

        _threads = [
            Thread(
                target=self._processor,
                args=(handler,),
                name=f"dhcp-worker-{_index}",
                daemon=True,
            )
            for _index in range(self._workers)
        ]
        for _thread in _threads:
            _thread.start()

        self.logger.info("Listening on %s:%s.", *self.address)
        try:
            while self._running:
                try:
                    _data, _addr = self._sock.recvfrom(MAX_DATAGRAM_SIZE)
                except TimeoutError:
                    continue
                except OSError:
                    if not self._running:
                        break
                    raise
                try:
                    self._received_queue.put_nowait((_data, _addr))
                except Full:
                    self.logger.warning("Queue full, dropping datagram from %s.", _addr[0])
        finally:
            self._running = False
            for _thread in _threads:
                _thread.join(timeout=self._worker_join_timeout)
            self._close_socket()
            self.logger.info("Listener stopped.")

    def close(self) -> None:
        with self._lock:
            self._running = False
            if not self._serving:
                self._close_socket()

    def _close_socket(self) -> None:
        with self._lock:
            if not self._closed:
                self._closed = True
                self._sock.close()

    def _processor(self, handler: MessageDispatcher) -> None:
        while self._running:
            try:
                _data, _addr = self._received_queue.get(timeout=self._worker_get_timeout)
            except Empty:
                continue
            try:
                self._handle(handler, _data, _addr)
            except Exception as err:
                self.logger.exception("Error processing datagram from %s: %s.", _addr[0], err)
            finally:
                self._received_queue.task_done()

    def _handle(self, handler: MessageDispatcher, data: bytes, addr: tuple[str, int]) -> None:
        try:
            _message = self._codec.decode(data)
        except MalformedPacketError as err:
            self.logger.debug("Dropping datagram from %s: %s", addr[0], err)
            return

        _reply = handler.dispatch(_message)
        if _reply is None:
            return

        _destination = reply_address(_message, addr)
        self._sock.sendto(self._codec.encode(_reply), _destination)
        self.logger.debug(
            "Sent %s to %s (%s).", _reply.dhcp_type, _destination[0], _message.mac
        )


class UDPTransport(Transport):
    """IPv4 UDP transport with optional SO_BINDTODEVICE interface binding."""

    def __init__(
        self,
        codec: PacketCodec,
        logger: Logger,
        host: str = NO_IP_ASSIGNED,
        workers: int = 2,
        queue_size: int = 100,
        socket_timeout: float = 0.5,
        worker_get_timeout: float = 0.5,
        worker_join_timeout: float = 2.0,
    ):
        self._codec = codec
        self.logger = logger
        self._host = host
        self._workers = workers
        self._queue_size = queue_size
        self._socket_timeout = socket_timeout
        self._worker_get_timeout = worker_get_timeout
        self._worker_join_timeout = worker_join_timeout

    def listen(self, port: int, interface: str | None = None) -> UDPListener:
        _sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            _sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            _sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            if interface:
                self.bind_to_interface(_sock, interface)
            _sock.settimeout(self._socket_timeout)
            _sock.bind((self._host, port))
        except OSError:
            _sock.close()
            raise

        return UDPListener(
            sock=_sock,
            codec=self._codec,
            logger=self.logger,
            workers=self._workers,
            queue_size=self._queue_size,
            worker_get_timeout=self._worker_get_timeout,
            worker_join_timeout=self._worker_join_timeout,
        )

    def bind_to_interface(self, sock: socket.socket, interface: str) -> None:
        """Restrict the socket to one network device (Linux, needs CAP_NET_RAW)."""
        sock.setsockopt(socket.SOL_SOCKET, SO_BINDTODEVICE, interface.encode() + b"\x00")
        self.logger.debug("Socket bound to interface %s.", interface)
