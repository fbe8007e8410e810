"""Common utilities, configuration, prompts and console output."""

from .utils import (
    format_ip_port,
    decode_payload,
    encode_text,
    constant_time_compare,
)
from .sink import ConsoleSink, SinkLogHandler
from .prompts import InputCollector
from .config import ServerConfig

__all__ = [
    "format_ip_port",
    "decode_payload",
    "encode_text",
    "constant_time_compare",
    "ConsoleSink",
    "SinkLogHandler",
    "InputCollector",
    "ServerConfig",
]
