import logging
from ipaddress import IPv4Address

import pytest
from scapy.layers.dhcp import BOOTP, DHCP

from hwdhcp.models.models import ClientMessage, DHCPOption, DHCPType, ServerConfiguration
from hwdhcp.services.dhcp.message_handler import DHCPMessageHandler

BASE_HWADDR = bytes.fromhex("aabb00000000")
CLIENT_HWADDR = bytes.fromhex("aabb00000005")
FOREIGN_HWADDR = bytes.fromhex("ccdd00000005")
SERVER_IP = IPv4Address("10.0.0.254")
ROUTER_IP = IPv4Address("10.0.0.254")
DNS_IP = IPv4Address("10.0.0.53")
NETMASK = IPv4Address("255.255.255.0")


@pytest.fixture
def configuration() -> ServerConfiguration:
    return ServerConfiguration(
        base_ip=IPv4Address("10.0.0.1"),
        base_hwaddr=BASE_HWADDR,
        netmask=NETMASK,
        server_ip=SERVER_IP,
        lease_time=86400,
        options={
            DHCPOption.SUBNET_MASK: NETMASK.packed,
            DHCPOption.ROUTER: ROUTER_IP.packed,
            DHCPOption.DOMAIN_NAME_SERVER: DNS_IP.packed,
        },
    )


@pytest.fixture
def handler(configuration) -> DHCPMessageHandler:
    return DHCPMessageHandler(configuration=configuration, logger=logging.getLogger("DHCP-TEST"))


def make_message(dhcp_type: int, hwaddr: bytes = CLIENT_HWADDR, **options: bytes) -> ClientMessage:
    """ClientMessage with options given by DHCPOption member name."""
    return ClientMessage(
        dhcp_type=dhcp_type,
        hwaddr=hwaddr,
        options={DHCPOption[_name.upper()]: _value for _name, _value in options.items()},
        xid=0x1234,
    )


def build_request(
    dhcp_options: list,
    hwaddr: bytes = CLIENT_HWADDR,
    xid: int = 0x1234,
    flags: int = 0,
    hlen: int = 6,
    secs: int = 0,
) -> bytes:
    """Raw client datagram built with scapy."""
    return bytes(
        BOOTP(op=1, hlen=hlen, xid=xid, secs=secs, flags=flags, chaddr=hwaddr)
        / DHCP(options=dhcp_options + ["end"])
    )


@pytest.fixture
def discover_datagram() -> bytes:
    return build_request([("message-type", DHCPType.DISCOVER), ("param_req_list", [1, 3, 6])])
