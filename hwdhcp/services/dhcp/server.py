from logging import Logger
from threading import RLock, Thread, current_thread
from typing import Callable

from hwdhcp.config.config import config
from hwdhcp.models.models import ConfigurationError, ServerConfiguration
from hwdhcp.services.dhcp.codec import PacketCodec, ScapyPacketCodec
from hwdhcp.services.dhcp.message_handler import DHCPMessageHandler
from hwdhcp.services.dhcp.transport import Listener, Transport, UDPTransport
from hwdhcp.services.dhcp.utils import is_net_interface_valid
from hwdhcp.services.logger.logger import MainLogger

DHCP_CONFIG = config.get("dhcp")
WORKERS = int(DHCP_CONFIG.get("workers"))
RECEIVED_QUEUE_SIZE = int(DHCP_CONFIG.get("rcvd_queue_size"))

TIMEOUTS = DHCP_CONFIG.get("timeouts")
WORKER_GET_TIMEOUT = float(TIMEOUTS.get("worker_get"))
WORKER_JOIN_TIMEOUT = float(TIMEOUTS.get("worker_join"))
SOCKET_TIMEOUT = float(TIMEOUTS.get("socket"))

dhcp_logger: Logger = MainLogger.get_logger(service_name="DHCP", log_level="debug")
transport_logger: Logger = MainLogger.get_logger(service_name="DHCP-TRANSPORT", log_level="info")


class DHCPServer:
    """Wires configuration, handler, codec and transport into one service."""

    _lock = RLock()
    _initialised = False
    _running = False
    _configuration: ServerConfiguration | None = None
    _handler: DHCPMessageHandler | None = None
    _transport: Transport | None = None
    _listener: Listener | None = None
    _worker: Thread | None = None
    _on_failure: Callable[[], None] | None = None

    @classmethod
    def init(
        cls,
        configuration: ServerConfiguration,
        transport: Transport | None = None,
        codec: PacketCodec | None = None,
        on_failure: Callable[[], None] | None = None,
    ) -> None:
        """Initialise the service once.

        `on_failure` is called from the listener thread when serving dies
        with an error; the service is already marked stopped by then.

        Raises:
            RuntimeError: Already initialised.
            ConfigurationError: Configured interface does not exist.
        """
        with cls._lock:
            if cls._initialised:
                raise RuntimeError("Already Init")

            if configuration.interface and not is_net_interface_valid(configuration.interface):
                raise ConfigurationError(f"Unknown network interface: {configuration.interface}.")

            cls._configuration = configuration
            cls._handler = DHCPMessageHandler(configuration=configuration, logger=dhcp_logger)
            cls._transport = transport or UDPTransport(
                codec=codec or ScapyPacketCodec(),
                logger=transport_logger,
                workers=WORKERS,
                queue_size=RECEIVED_QUEUE_SIZE,
                socket_timeout=SOCKET_TIMEOUT,
                worker_get_timeout=WORKER_GET_TIMEOUT,
                worker_join_timeout=WORKER_JOIN_TIMEOUT,
            )
            cls._on_failure = on_failure
            cls._initialised = True

    @classmethod
    def start(cls) -> None:
        """Open the listener and start serving in a background thread."""
        with cls._lock:
            if not cls._initialised:
                raise RuntimeError("Not init.")
            if cls._running:
                raise RuntimeError("Server already running.")

            _configuration = cls._configuration
            cls._listener = cls._transport.listen(
                port=_configuration.port, interface=_configuration.interface
            )
            cls._worker = Thread(
                target=cls._serve,
                args=(cls._listener, cls._handler),
                name="dhcp-traffic-listener",
                daemon=True,
            )
            cls._running = True
            cls._worker.start()
            dhcp_logger.info(
                "Started %s on port %s, interface %s, server ID %s.",
                cls.__name__,
                _configuration.port,
                _configuration.interface or "any",
                _configuration.server_ip,
            )

    @classmethod
    def stop(cls, worker_join_timeout: float = WORKER_JOIN_TIMEOUT) -> None:
        with cls._lock:
            if not cls._running:
                raise RuntimeError("Server not running.")
            _listener, _worker = cls._listener, cls._worker
            cls._listener = None
            cls._worker = None
            cls._running = False

        # Joined outside the lock, a failing listener thread takes it too
        _listener.close()
        if _worker and _worker.is_alive():
            _worker.join(timeout=worker_join_timeout)
        dhcp_logger.info("Stopped %s.", cls.__name__)

    @classmethod
    def _serve(cls, listener: Listener, handler: DHCPMessageHandler) -> None:
        """Listener thread body; a listener that dies marks the service stopped."""
        try:
            listener.serve(handler)
        except Exception as err:
            dhcp_logger.critical("DHCP listener failed: %s", err, exc_info=True)
            with cls._lock:
                if cls._worker is not current_thread():
                    return
                cls._listener = None
                cls._worker = None
                cls._running = False
                _on_failure = cls._on_failure
            listener.close()
            if _on_failure:
                _on_failure()

    @classmethod
    def reset(cls) -> None:
        """Drop initialisation so init() can be called again."""
        if cls.is_running():
            cls.stop()
        with cls._lock:
            cls._configuration = None
            cls._handler = None
            cls._transport = None
            cls._on_failure = None
            cls._initialised = False

    @classmethod
    def is_running(cls) -> bool:
        return cls._running
