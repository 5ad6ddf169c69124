from argparse import ArgumentParser, Namespace
from logging import Logger
from signal import SIGABRT, SIGINT, SIGQUIT, SIGTERM, signal
from sys import exit as sys_exit
from threading import Event

from hwdhcp.config.config import config
from hwdhcp.config.schema import build_server_configuration
from hwdhcp.models.models import ConfigurationError
from hwdhcp.services.dhcp.server import DHCPServer
from hwdhcp.services.logger.logger import MainLogger

logger: Logger = MainLogger.get_logger(service_name="MAIN", log_level="info")
shutdown_event = Event()

# Command line flag -> key of the `dhcp` config section
FLAG_TO_SETTING = {
    "router": "router",
    "subnet": "subnet",
    "dns": "dns",
    "mac": "mac",
    "serverip": "server_ip",
    "netif": "interface",
    "port": "port",
    "lease_time": "lease_time_seconds",
    "verify_requested_ip": "verify_requested_ip",
}


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Command line flags; any flag left out keeps its config.yaml value."""
    parser = ArgumentParser(
        prog="hwdhcp",
        description="DHCPv4 server deriving client addresses from their MAC address.",
    )
    parser.add_argument("--router", help="router to offer over DHCP")
    parser.add_argument("--subnet", help="subnet to offer over DHCP, CIDR; the address part is the base IP")
    parser.add_argument("--dns", help="dns to offer over DHCP")
    parser.add_argument("--mac", help="base MAC address")
    parser.add_argument("--serverip", help="DHCP server IP address")
    parser.add_argument("--netif", help="network interface to listen on")
    parser.add_argument("--port", type=int, help="UDP port to listen on")
    parser.add_argument("--lease-time", type=int, help="lease time in seconds")
    parser.add_argument(
        "--verify-requested-ip",
        action="store_true",
        default=None,
        help="NAK requests for an address other than the mapped one",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    return parser.parse_args(argv)


def merge_settings(defaults: dict, args: Namespace) -> dict:
    """Overlay the flags that were given on top of the config file settings."""
    _settings = dict(defaults)
    for _flag, _key in FLAG_TO_SETTING.items():
        _value = getattr(args, _flag, None)
        if _value is not None:
            _settings[_key] = _value
    return _settings


def shutdown_handler(signum: int, frame):
    """Handles app shutdown calls.

    Args:
        signum (int): The signal number received.
        frame (frame object): Current stack frame.

    """
    logger.debug("Received %s.", signum)
    shutdown_event.set()


def register_shutdowns():
    """Registers shutdown handler for common interrupt signals"""
    signal(SIGINT, shutdown_handler)
    signal(SIGTERM, shutdown_handler)
    signal(SIGQUIT, shutdown_handler)
    signal(SIGABRT, shutdown_handler)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.log_level:
        MainLogger.set_level(args.log_level)

    try:
        configuration = build_server_configuration(merge_settings(config.get("dhcp"), args))
        DHCPServer.init(configuration=configuration, on_failure=shutdown_event.set)
    except ConfigurationError as err:
        logger.critical("%s", err)
        return 1

    logger.info("Starting DHCP server")
    register_shutdowns()
    try:
        DHCPServer.start()
    except PermissionError:
        logger.critical("Permission denied binding port %s, root privileges required.", configuration.port)
        return 1
    except OSError as err:
        logger.critical("Unable to listen on port %s: %s.", configuration.port, err)
        return 1

    shutdown_event.wait()
    if not DHCPServer.is_running():
        logger.critical("DHCP server stopped unexpectedly.")
        return 1

    logger.info("Stopping DHCP server.")
    DHCPServer.stop()
    logger.info("Shutdown complete.")
    return 0


if __name__ == "__main__":
    sys_exit(main())
