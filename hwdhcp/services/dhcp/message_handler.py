from ipaddress import IPv4Address
from logging import Logger

from hwdhcp.models.models import (
    ClientMessage,
    DHCPOption,
    DHCPType,
    ReplyMessage,
    ServerConfiguration,
)
from hwdhcp.services.dhcp.address_mapper import map_hwaddr_to_ip
from hwdhcp.services.dhcp.utils import select_options


class DHCPMessageHandler:
    """Resolve each inbound message to a reply, or None for no reply.

    Holds nothing but the read-only configuration, so a single instance can be
    shared by every worker thread without locking.
    """

    def __init__(self, configuration: ServerConfiguration, logger: Logger):
        self._configuration = configuration
        self.logger = logger

    @property
    def configuration(self) -> ServerConfiguration:
        return self._configuration

    def dispatch(self, message: ClientMessage) -> ReplyMessage | None:
        """Process an incoming DHCP message based on its DHCP type.

        Behavior:
            * DISCOVER -> OFFER, or None when the MAC is unmapped
            * REQUEST  -> ACK, NAK, or None when addressed to another server
            * DECLINE, RELEASE and anything else -> logged, None
        """
        match message.dhcp_type:
            case DHCPType.DISCOVER:
                return self._handle_discover(message)
            case DHCPType.REQUEST:
                return self._handle_request(message)
            case DHCPType.RELEASE:
                self.logger.info("RELEASE from %s.", message.mac)
            case DHCPType.DECLINE:
                self.logger.info("DECLINE from %s.", message.mac)
            case _:
                self.logger.info(
                    "Ignoring DHCP message type %s from %s.",
                    message.dhcp_type,
                    message.mac,
                )
        return None

    def _handle_discover(self, message: ClientMessage) -> ReplyMessage | None:
        self.logger.info("DISCOVER XID=%s, MAC=%s.", message.xid, message.mac)

        _mapped = map_hwaddr_to_ip(message.hwaddr, self._configuration)
        if _mapped is None:
            return None

        self.logger.debug("Offering %s to %s.", _mapped, message.mac)
        return self._build_reply(DHCPType.OFFER, _mapped, message)

    def _handle_request(self, message: ClientMessage) -> ReplyMessage | None:
        self.logger.info("REQUEST XID=%s, MAC=%s.", message.xid, message.mac)

        _server_id = message.options.get(DHCPOption.SERVER_ID)
        if _server_id is not None and _server_id != self._configuration.server_ip.packed:
            self.logger.debug("REQUEST from %s addressed to another server.", message.mac)
            return None

        _requested = message.options.get(DHCPOption.REQUESTED_IP)
        if _requested is not None and len(_requested) == 4:
            _mapped = map_hwaddr_to_ip(message.hwaddr, self._configuration)
            if _mapped is not None:
                _requested_ip = IPv4Address(_requested)
                if self._configuration.verify_requested_ip and _requested_ip != _mapped:
                    self.logger.warning(
                        "NAK: %s requested %s, mapped address is %s.",
                        message.mac,
                        _requested_ip,
                        _mapped,
                    )
                    return self._build_nak(message)
                return self._build_reply(DHCPType.ACK, _requested_ip, message)

        self.logger.info("NAK: %s sent no usable requested address.", message.mac)
        return self._build_nak(message)

    def _build_reply(
        self, dhcp_type: DHCPType, your_ip: IPv4Address, message: ClientMessage
    ) -> ReplyMessage:
        return ReplyMessage(
            dhcp_type=dhcp_type,
            server_ip=self._configuration.server_ip,
            your_ip=your_ip,
            lease_time=self._configuration.lease_time,
            options=select_options(
                self._configuration.options,
                message.options.get(DHCPOption.PARAM_REQ_LIST),
            ),
            request=message,
        )

    def _build_nak(self, message: ClientMessage) -> ReplyMessage:
        return ReplyMessage(
            dhcp_type=DHCPType.NAK,
            server_ip=self._configuration.server_ip,
            your_ip=None,
            lease_time=0,
            options=(),
            request=message,
        )
