"""Client lifecycle callbacks invoked by the server on its own threads."""

from typing import Optional

from tcpconsole.common.sink import ConsoleSink
from tcpconsole.common.utils import decode_payload


class EventHandlers:
    """
    Connect, disconnect and message callbacks.

    Each handler only appends one line to the sink, so they may run
    concurrently with each other and with the command loop.
    """

    def __init__(self, sink: ConsoleSink):
        self.sink = sink

    def on_client_connected(self, ip_port: str) -> None:
        self.sink.write(f"Client connected: {ip_port}")

    def on_client_disconnected(self, ip_port: str) -> None:
        self.sink.write(f"Client disconnected: {ip_port}")

    def on_message_received(self, ip_port: str, data: Optional[bytes]) -> None:
        self.sink.write(f"Message received from {ip_port}: {decode_payload(data)}")
