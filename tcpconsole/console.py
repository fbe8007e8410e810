"""
TCP Console - interactive operator console for a TCP server.

Handles:
1. Collecting the server configuration from the operator
2. Constructing a plaintext or TLS server and registering event handlers
3. Starting the server without waiting on it
4. Handing the terminal to the command loop
"""

import logging
import sys
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tcpconsole.common import config
from tcpconsole.common.config import ServerConfig
from tcpconsole.common.prompts import InputCollector
from tcpconsole.common.sink import ConsoleSink, SinkLogHandler
from tcpconsole.dispatcher import CommandDispatcher
from tcpconsole.handlers import EventHandlers
from tcpconsole.server import TcpServer

logger = logging.getLogger(__name__)


@dataclass
class ConsoleSession:
    """Everything one console run shares between the command loop and callbacks."""
    config: ServerConfig
    server: Any
    sink: ConsoleSink
    inputs: InputCollector
    handlers: EventHandlers
    started: Optional[Future] = None


class SessionController:
    """Builds the session from operator input and runs the command loop."""

    def __init__(
        self,
        sink: Optional[ConsoleSink] = None,
        inputs: Optional[InputCollector] = None,
        server_factory: Callable[..., Any] = TcpServer
    ):
        """
        Args:
            sink: Console output; stdout when omitted
            inputs: Prompt helper; reads stdin when omitted
            server_factory: Called as (ip, port) or (ip, port, cert_file, cert_password)
        """
        self.sink = sink or ConsoleSink()
        self.inputs = inputs or InputCollector(self.sink)
        self.server_factory = server_factory

    def ask_port(self) -> int:
        while True:
            port = self.inputs.ask_int("Server port:", config.DEFAULT_SERVER_PORT, True, False)
            if config.MIN_PORT <= port <= config.MAX_PORT:
                return port
            self.sink.write(f"Please enter a port between {config.MIN_PORT} and {config.MAX_PORT}.")

    def collect_config(self) -> ServerConfig:
        """Ask the startup questions in order and return the validated config."""
        server_ip = self.inputs.ask_string("Server IP:", config.DEFAULT_SERVER_IP, False)
        server_port = self.ask_port()
        use_ssl = self.inputs.ask_bool("Use SSL:", False)

        if not use_ssl:
            return ServerConfig(server_ip=server_ip, server_port=server_port, use_ssl=False)

        return ServerConfig(
            server_ip=server_ip,
            server_port=server_port,
            use_ssl=True,
            cert_file=self.inputs.ask_string("Certificate file:", config.DEFAULT_CERT_FILE, False),
            cert_password=self.inputs.ask_string("Certificate password:", config.DEFAULT_CERT_PASSWORD, False),
            accept_invalid_certs=self.inputs.ask_bool("Accept invalid certs:", True),
            mutual_authentication=self.inputs.ask_bool("Mutually authenticate:", False),
        )

    def create_server(self, server_config: ServerConfig):
        if not server_config.use_ssl:
            return self.server_factory(server_config.server_ip, server_config.server_port)

        server = self.server_factory(
            server_config.server_ip,
            server_config.server_port,
            server_config.cert_file,
            server_config.cert_password
        )
        server.accept_invalid_certificates = server_config.accept_invalid_certs
        server.mutually_authenticate = server_config.mutual_authentication
        return server

    def start_session(self) -> ConsoleSession:
        """
        Collect configuration, build the server and start it.

        Handlers are registered before start() so no early event is lost.
        Construction and start errors propagate to the caller.
        """
        server_config = self.collect_config()
        server = self.create_server(server_config)

        handlers = EventHandlers(self.sink)
        server.register_handlers(
            on_connected=handlers.on_client_connected,
            on_disconnected=handlers.on_client_disconnected,
            on_message=handlers.on_message_received,
        )
        server.debug = False

        session = ConsoleSession(
            config=server_config,
            server=server,
            sink=self.sink,
            inputs=self.inputs,
            handlers=handlers,
        )
        # Not awaited; the server runs until disposed or the process exits
        session.started = server.start()
        logger.info(f"Server started on {server_config.endpoint}")
        return session

    def run(self) -> ConsoleSession:
        session = self.start_session()
        CommandDispatcher(session.server, session.inputs, session.sink).run()
        return session


def configure_logging(sink: ConsoleSink):
    handler = SinkLogHandler(sink)
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=[handler]
    )


def main():
    """Entry point for the console."""
    sink = ConsoleSink()
    configure_logging(sink)
    try:
        SessionController(sink=sink).run()
    except KeyboardInterrupt:
        sink.write()
        logger.info("Console interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
