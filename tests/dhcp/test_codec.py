from ipaddress import IPv4Address

import pytest
from scapy.layers.dhcp import BOOTP

from conftest import CLIENT_HWADDR, NETMASK, SERVER_IP, build_request, make_message
from hwdhcp.models.models import DHCPOption, DHCPType, MalformedPacketError
from hwdhcp.services.dhcp.codec import MIN_PACKET_SIZE, MIN_REPLY_SIZE, ScapyPacketCodec
from hwdhcp.services.dhcp.utils import extract_options_from_packet

codec = ScapyPacketCodec()


def test_decode_discover(discover_datagram):
    message = codec.decode(discover_datagram)

    assert message.dhcp_type == DHCPType.DISCOVER
    assert message.hwaddr == CLIENT_HWADDR
    assert message.mac == "aa:bb:00:00:00:05"
    assert message.xid == 0x1234
    assert message.options[DHCPOption.PARAM_REQ_LIST] == bytes([1, 3, 6])
    assert not message.is_broadcast


def test_decode_request_options():
    datagram = build_request(
        [
            ("message-type", DHCPType.REQUEST),
            ("requested_addr", "10.0.0.5"),
            ("server_id", str(SERVER_IP)),
        ],
        flags=0x8000,
    )
    message = codec.decode(datagram)

    assert message.dhcp_type == DHCPType.REQUEST
    assert message.options[DHCPOption.REQUESTED_IP] == IPv4Address("10.0.0.5").packed
    assert message.options[DHCPOption.SERVER_ID] == SERVER_IP.packed
    assert message.is_broadcast


def test_decode_too_short(discover_datagram):
    with pytest.raises(MalformedPacketError):
        codec.decode(discover_datagram[:MIN_PACKET_SIZE - 1])


def test_decode_missing_magic_cookie(discover_datagram):
    datagram = discover_datagram[:236] + b"\x00\x00\x00\x00" + discover_datagram[240:]
    with pytest.raises(MalformedPacketError):
        codec.decode(datagram)


def test_decode_missing_message_type():
    with pytest.raises(MalformedPacketError):
        codec.decode(build_request([("hostname", b"client")]))


def test_decode_unknown_message_type():
    with pytest.raises(MalformedPacketError):
        codec.decode(build_request([("message-type", 13)]))


@pytest.mark.parametrize("hlen", [8, 17])
def test_decode_bad_hardware_length(hlen):
    with pytest.raises(MalformedPacketError):
        codec.decode(build_request([("message-type", DHCPType.DISCOVER)], hlen=hlen))


def test_encode_offer(handler):
    request = make_message(DHCPType.DISCOVER)
    datagram = codec.encode(handler.dispatch(request))

    packet = BOOTP(datagram)
    assert len(datagram) >= MIN_REPLY_SIZE
    assert packet.op == 2
    assert packet.xid == request.xid
    assert packet.yiaddr == "10.0.0.5"
    assert bytes(packet.chaddr)[:6] == CLIENT_HWADDR

    options = extract_options_from_packet(packet)
    assert options[DHCPOption.MESSAGE_TYPE] == bytes([DHCPType.OFFER])
    assert options[DHCPOption.SERVER_ID] == SERVER_IP.packed
    assert options[DHCPOption.LEASE_TIME] == (86400).to_bytes(4, "big")
    assert options[DHCPOption.SUBNET_MASK] == NETMASK.packed


def test_encode_nak(handler):
    request = make_message(DHCPType.REQUEST)
    datagram = codec.encode(handler.dispatch(request))

    packet = BOOTP(datagram)
    assert packet.yiaddr == "0.0.0.0"

    options = extract_options_from_packet(packet)
    assert options[DHCPOption.MESSAGE_TYPE] == bytes([DHCPType.NAK])
    assert options[DHCPOption.SERVER_ID] == SERVER_IP.packed
    assert DHCPOption.LEASE_TIME not in options
    assert DHCPOption.SUBNET_MASK not in options


def test_encode_then_decode_keeps_transaction(handler, discover_datagram):
    request = codec.decode(discover_datagram)
    packet = BOOTP(codec.encode(handler.dispatch(request)))

    assert packet.xid == request.xid
    assert packet.flags == request.flags
    assert packet.giaddr == request.giaddr


def test_encode_echoes_secs(handler):
    request = codec.decode(build_request([("message-type", DHCPType.DISCOVER)], secs=7))
    packet = BOOTP(codec.encode(handler.dispatch(request)))

    assert request.secs == 7
    assert packet.secs == 7
