from ipaddress import IPv4Address
from logging import Logger

from hwdhcp.models.models import ConfigurationError, ServerConfiguration
from hwdhcp.services.dhcp.utils import HWADDR_LENGTH, format_hwaddr
from hwdhcp.services.logger.logger import MainLogger

PREFIX_LENGTH = 2

mapper_logger: Logger = MainLogger.get_logger(service_name="DHCP-MAPPER", log_level="debug")


def map_hwaddr_to_ip(hwaddr: bytes, configuration: ServerConfiguration) -> IPv4Address | None:
    """Derive the IPv4 address of a client from its hardware address.

    The first two MAC octets must equal those of the base MAC. Each of the
    remaining four octets is XOR-ed with the base MAC and the result OR-ed into
    the matching octet of the base IP. Bits that land inside the netmask are
    reported but still applied.

    Args:
        hwaddr (bytes): 6 byte client hardware address.
        configuration (ServerConfiguration): Server configuration.

    Returns:
        IPv4Address | None: Mapped address, None if the MAC is outside the managed range.

    Raises:
        ConfigurationError: Base IP, netmask or base MAC have the wrong length.
        ValueError: Client hardware address is not 6 bytes.
    """
    _base_ip = configuration.base_ip.packed
    _netmask = configuration.netmask.packed
    _base_hwaddr = configuration.base_hwaddr

    if len(_base_ip) != 4:
        raise ConfigurationError("Unexpected base IP length.")
    if len(_netmask) != 4:
        raise ConfigurationError("Unexpected netmask length.")
    if len(_base_hwaddr) != HWADDR_LENGTH:
        raise ConfigurationError("Unexpected base MAC length.")
    if len(hwaddr) != HWADDR_LENGTH:
        raise ValueError(f"Unexpected client MAC length {len(hwaddr)}.")

    if hwaddr[:PREFIX_LENGTH] != _base_hwaddr[:PREFIX_LENGTH]:
        mapper_logger.info(
            "MAC %s outside managed range %s.",
            format_hwaddr(hwaddr),
            format_hwaddr(_base_hwaddr[:PREFIX_LENGTH]),
        )
        return None

    _address = bytearray(_base_ip)
    for _index in range(PREFIX_LENGTH, HWADDR_LENGTH):
        _octet = _index - PREFIX_LENGTH
        _delta = _base_hwaddr[_index] ^ hwaddr[_index]
        if _delta & _netmask[_octet]:
            mapper_logger.warning(
                "MAC %s host-id bits collide with network bits at octet %s.",
                format_hwaddr(hwaddr),
                _octet,
            )
        _address[_octet] |= _delta

    _mapped = IPv4Address(bytes(_address))
    mapper_logger.debug("Mapped MAC %s to %s.", format_hwaddr(hwaddr), _mapped)
    return _mapped
