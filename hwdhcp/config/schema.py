from ipaddress import IPv4Address, IPv4Interface
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hwdhcp.models.models import ConfigurationError, DHCPOption, ServerConfiguration
from hwdhcp.services.dhcp.utils import parse_hwaddr


class DHCPSettings(BaseModel):
    """Startup settings of the `dhcp` section, after command line overrides."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    interface: str | None = None
    port: int = Field(default=67, ge=1, le=65535)
    router: IPv4Address | None = None
    dns: IPv4Address | None = None
    subnet: IPv4Interface
    mac: bytes
    server_ip: IPv4Address
    lease_time_seconds: int = Field(default=86400, gt=0)
    verify_requested_ip: bool = False

    @field_validator("subnet", mode="before")
    @classmethod
    def _require_cidr(cls, value: Any) -> Any:
        if isinstance(value, str) and "/" not in value:
            raise ValueError(f"Expected CIDR notation, got {value!r}")
        return value

    @field_validator("mac", mode="before")
    @classmethod
    def _parse_mac(cls, value: Any) -> bytes:
        return parse_hwaddr(value)

    def to_server_configuration(self) -> ServerConfiguration:
        """Build the immutable ServerConfiguration.

        The base IP is the address part of `subnet` and the netmask comes from
        its prefix. The subnet mask option is always offered, router and DNS
        only when configured.
        """
        _options = {DHCPOption.SUBNET_MASK: self.subnet.netmask.packed}
        if self.router is not None:
            _options[DHCPOption.ROUTER] = self.router.packed
        if self.dns is not None:
            _options[DHCPOption.DOMAIN_NAME_SERVER] = self.dns.packed

        return ServerConfiguration(
            base_ip=self.subnet.ip,
            base_hwaddr=self.mac,
            netmask=self.subnet.netmask,
            server_ip=self.server_ip,
            lease_time=self.lease_time_seconds,
            options={int(_code): _value for _code, _value in _options.items()},
            interface=self.interface or None,
            port=self.port,
            verify_requested_ip=self.verify_requested_ip,
        )


def build_server_configuration(raw: dict) -> ServerConfiguration:
    """Validate raw settings and build a ServerConfiguration.

    Keys with a None value count as missing.

    Raises:
        ConfigurationError: Settings are missing or malformed.
    """
    _settings = {_key: _value for _key, _value in raw.items() if _value is not None}
    try:
        return DHCPSettings.model_validate(_settings).to_server_configuration()
    except ValidationError as err:
        raise ConfigurationError(f"Invalid DHCP configuration: {err}") from err
