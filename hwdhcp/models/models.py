from dataclasses import dataclass, field
from enum import Enum, IntEnum, unique
from ipaddress import IPv4Address
from types import MappingProxyType
from typing import Mapping

BOOTP_FLAG_BROADCAST = 0x8000


class ConfigurationError(Exception):
    """Startup configuration is invalid; the server must not serve."""


class MalformedPacketError(ValueError):
    """Inbound datagram is not a DHCP request we can process."""


@unique
class DHCPType(IntEnum):
    """DHCP message type (option 53)"""

    DISCOVER = 1
    OFFER = 2
    REQUEST = 3
    DECLINE = 4
    ACK = 5
    NAK = 6
    RELEASE = 7
    INFORM = 8

    def __str__(self) -> str:
        return self.name


@unique
class DHCPOption(IntEnum):
    """Option codes the server reads or writes."""

    PAD = 0
    SUBNET_MASK = 1
    ROUTER = 3
    DOMAIN_NAME_SERVER = 6
    REQUESTED_IP = 50
    LEASE_TIME = 51
    MESSAGE_TYPE = 53
    SERVER_ID = 54
    PARAM_REQ_LIST = 55
    END = 255


@unique
class LogLevel(Enum):
    """LogLevel"""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def _missing_(cls, value):
        """Resolve level names case-insensitively, falling back to DEBUG."""
        if isinstance(value, str):
            value = value.strip().upper()
            for member in cls:
                if member.name == value:
                    return member
        return cls.DEBUG


@dataclass(frozen=True)
class ServerConfiguration:
    """
    Immutable server configuration, built once at startup.

    Attributes:
        base_ip (IPv4Address): Address OR-ed with the host part derived from the MAC.
        base_hwaddr (bytes): 6 byte base MAC; its first two octets define the managed range.
        netmask (IPv4Address): Mask separating network bits from host bits.
        server_ip (IPv4Address): Server identifier advertised in every reply.
        lease_time (int): Lease duration in seconds advertised to clients.
        options (Mapping[int, bytes]): Options offered to clients, by code.
        interface (str | None): Network interface the socket is bound to.
        port (int): UDP port to listen on.
        verify_requested_ip (bool): NAK requests whose address differs from the mapped one.
    """

    base_ip: IPv4Address
    base_hwaddr: bytes
    netmask: IPv4Address
    server_ip: IPv4Address
    lease_time: int = 86400
    options: Mapping[int, bytes] = field(default_factory=dict)
    interface: str | None = None
    port: int = 67
    verify_requested_ip: bool = False

    def __post_init__(self):
        # options is exposed read-only
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


@dataclass(frozen=True)
class ClientMessage:
    """Decoded inbound DHCP message."""

    dhcp_type: int
    hwaddr: bytes
    options: Mapping[int, bytes] = field(default_factory=dict)
    xid: int = 0
    secs: int = 0
    flags: int = 0
    ciaddr: str = "0.0.0.0"
    giaddr: str = "0.0.0.0"

    @property
    def mac(self) -> str:
        return ":".join(f"{octet:02x}" for octet in self.hwaddr)

    @property
    def is_broadcast(self) -> bool:
        return bool(self.flags & BOOTP_FLAG_BROADCAST)


@dataclass(frozen=True)
class ReplyMessage:
    """
    Reply to a ClientMessage.

    Attributes:
        dhcp_type (DHCPType): OFFER, ACK or NAK.
        server_ip (IPv4Address): Server identifier (option 54).
        your_ip (IPv4Address | None): Address assigned to the client, None for NAK.
        lease_time (int): Lease time in seconds, 0 means the option is omitted.
        options (tuple): Ordered (code, value) pairs appended after the standard options.
        request (ClientMessage): Message being answered; supplies xid, secs, flags, giaddr and chaddr.
    """

    dhcp_type: DHCPType
    server_ip: IPv4Address
    your_ip: IPv4Address | None
    lease_time: int
    options: tuple[tuple[int, bytes], ...]
    request: ClientMessage
