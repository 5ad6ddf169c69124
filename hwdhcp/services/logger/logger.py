import logging.config

from hwdhcp.config.config import config
from hwdhcp.models.models import LogLevel

logging.config.dictConfig(config.get("logging"))

SERVICE_LOGGERS = ("MAIN", "DHCP", "DHCP-MAPPER", "DHCP-TRANSPORT")


class MainLogger:
    """Server wide logging, configured from the `logging` config section."""

    @classmethod
    def get_logger(
        cls, service_name: str = "MAIN", log_level: str = "DEBUG"
    ) -> logging.Logger:
        """Named logger getter.

        Args:
            service_name(str): Logger name, one of SERVICE_LOGGERS for server code.
            log_level(str): Level name; unknown names resolve to DEBUG.
        Returns:
            logging.Logger: Configured logger instance.
        """
        logger = logging.getLogger(service_name)
        logger.setLevel(LogLevel(log_level).value)
        return logger

    @classmethod
    def set_level(cls, log_level: str) -> None:
        """Override the level of the root logger and every service logger."""
        _level = LogLevel(log_level).value
        logging.getLogger().setLevel(_level)
        for _name in SERVICE_LOGGERS:
            logging.getLogger(_name).setLevel(_level)
