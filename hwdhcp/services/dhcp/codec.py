from abc import ABC, abstractmethod

from scapy.layers.dhcp import BOOTP, DHCP, dhcpmagic

from hwdhcp.models.models import (
    ClientMessage,
    DHCPOption,
    DHCPType,
    MalformedPacketError,
    ReplyMessage,
)
from hwdhcp.services.dhcp.utils import HWADDR_LENGTH, extract_options_from_packet

BOOTP_HEADER_SIZE = 236
MIN_PACKET_SIZE = BOOTP_HEADER_SIZE + len(dhcpmagic)
MIN_REPLY_SIZE = 272
MAX_HWADDR_LENGTH = 16
BOOTREPLY = 2
HTYPE_ETHERNET = 1
NO_IP_ASSIGNED = "0.0.0.0"


class PacketCodec(ABC):
    """Translates between raw DHCP datagrams and message objects."""

    @abstractmethod
    def decode(self, datagram: bytes) -> ClientMessage:
        """Decode an inbound datagram.

        Raises:
            MalformedPacketError: Datagram is not a processable DHCP request.
        """

    @abstractmethod
    def encode(self, reply: ReplyMessage) -> bytes:
        """Encode a reply into a datagram ready to send."""


class ScapyPacketCodec(PacketCodec):
    """PacketCodec built on scapy's BOOTP/DHCP layers."""

    def decode(self, datagram: bytes) -> ClientMessage:
        if len(datagram) < MIN_PACKET_SIZE:
            raise MalformedPacketError(f"Packet too small: {len(datagram)} bytes.")
        _bootp = BOOTP(datagram)
        if DHCP not in _bootp:
            raise MalformedPacketError("Missing DHCP magic cookie.")
        if _bootp.hlen > MAX_HWADDR_LENGTH:
            raise MalformedPacketError(f"Invalid hardware address length {_bootp.hlen}.")

        _options = extract_options_from_packet(_bootp)
        _message_type = _options.get(DHCPOption.MESSAGE_TYPE, b"")
        if len(_message_type) != 1:
            raise MalformedPacketError("Missing DHCP message type.")
        if not DHCPType.DISCOVER <= _message_type[0] <= DHCPType.INFORM:
            raise MalformedPacketError(f"Unknown DHCP message type {_message_type[0]}.")

        _hwaddr = bytes(_bootp.chaddr)[:_bootp.hlen]
        if len(_hwaddr) != HWADDR_LENGTH:
            raise MalformedPacketError(f"Unsupported hardware address length {len(_hwaddr)}.")

        return ClientMessage(
            dhcp_type=DHCPType(_message_type[0]),
            hwaddr=_hwaddr,
            options=_options,
            xid=_bootp.xid,
            secs=_bootp.secs,
            flags=int(_bootp.flags),
            ciaddr=_bootp.ciaddr,
            giaddr=_bootp.giaddr,
        )

    def encode(self, reply: ReplyMessage) -> bytes:
        _request = reply.request
        _packet = BOOTP(
            op=BOOTREPLY,
            htype=HTYPE_ETHERNET,
            hlen=len(_request.hwaddr),
            xid=_request.xid,
            secs=_request.secs,
            flags=_request.flags,
            yiaddr=str(reply.your_ip) if reply.your_ip else NO_IP_ASSIGNED,
            giaddr=_request.giaddr,
            chaddr=_request.hwaddr,
        ) / DHCP(options=self._build_dhcp_opts(reply))
        return bytes(_packet).ljust(MIN_REPLY_SIZE, b"\x00")

    @staticmethod
    def _build_dhcp_opts(reply: ReplyMessage) -> list:
        """Create the DHCP options list of a reply."""
        _options: list = [
            ("message-type", int(reply.dhcp_type)),
            ("server_id", str(reply.server_ip)),
        ]
        if reply.lease_time > 0:
            _options.append(("lease_time", reply.lease_time))
        _options.extend(reply.options)
        _options.append("end")
        return _options
