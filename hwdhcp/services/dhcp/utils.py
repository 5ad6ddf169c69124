from re import fullmatch
from typing import Iterable, Mapping

from scapy.arch import get_if_list
from scapy.compat import bytes_encode
from scapy.layers.dhcp import DHCP, DHCPRevOptions
from scapy.packet import Packet

HWADDR_LENGTH = 6


def is_net_interface_valid(iface: str) -> bool:
    """is_net_interface_valid"""
    return iface in get_if_list()


def parse_hwaddr(value: str) -> bytes:
    """Parse a 6 byte MAC address.

    Accepts `aa:bb:cc:dd:ee:ff`, `aa-bb-cc-dd-ee-ff` and `aabb.ccdd.eeff`.

    Raises:
        ValueError: Value is not a 6 byte hardware address.
    """
    if not isinstance(value, str):
        raise ValueError(f"Invalid MAC address: {value!r}")

    _value = value.strip()
    if fullmatch(r"[0-9A-Fa-f]{2}([:-])[0-9A-Fa-f]{2}(\1[0-9A-Fa-f]{2}){4}", _value):
        return bytes.fromhex(_value.replace(":", "").replace("-", ""))
    if fullmatch(r"[0-9A-Fa-f]{4}(\.[0-9A-Fa-f]{4}){2}", _value):
        return bytes.fromhex(_value.replace(".", ""))

    raise ValueError(f"Invalid MAC address: {value!r}")


def format_hwaddr(hwaddr: bytes) -> str:
    """Format raw hardware address bytes as `aa:bb:cc:dd:ee:ff`"""
    return ":".join(f"{_octet:02x}" for _octet in hwaddr)


def extract_options_from_packet(packet: Packet) -> dict[int, bytes]:
    """Collect the options of a dissected DHCP packet as code -> value bytes.

    Named options are re-encoded with the scapy field that decoded them,
    unknown codes keep their raw value. Entries scapy could not dissect
    (pad, end, malformed values) are skipped. A repeated code keeps the
    last value.
    """
    _layer = packet[DHCP]
    _options: dict[int, bytes] = {}
    for _opt in _layer.options:
        if not isinstance(_opt, tuple) or len(_opt) < 2:
            continue
        _name, _values = _opt[0], _opt[1:]
        if isinstance(_name, int):
            _options[_name] = b"".join(bytes_encode(_value) for _value in _values)
            continue
        if _name not in DHCPRevOptions:
            continue
        _code, _field = DHCPRevOptions[_name]
        if _field is None:
            _options[_code] = b"".join(bytes_encode(_value) for _value in _values)
        else:
            _options[_code] = b"".join(
                _field.addfield(_layer, b"", _field.any2i(_layer, _value)) for _value in _values
            )
    return _options


def select_options(
    offered: Mapping[int, bytes], param_req_list: Iterable[int] | None
) -> tuple[tuple[int, bytes], ...]:
    """Pick the offered options the client asked for, in the client's order.

    Without a parameter request list (or with an empty one) every offered
    option is returned, ordered by code.
    """
    _requested = list(param_req_list or [])
    if not _requested:
        return tuple((_code, offered[_code]) for _code in sorted(offered))

    _selected = []
    for _code in _requested:
        if _code in offered and all(_code != _seen for _seen, _ in _selected):
            _selected.append((_code, offered[_code]))
    return tuple(_selected)
