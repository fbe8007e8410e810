"""Interactive command loop run against a live server."""

import enum
import logging

from tcpconsole.common.config import DEFAULT_PRESHARED_KEY
from tcpconsole.common.prompts import InputCollector
from tcpconsole.common.sink import ConsoleSink
from tcpconsole.common.utils import encode_text

logger = logging.getLogger(__name__)

COMMAND_PROMPT = "Command [? for help]: "


class Command(enum.Enum):
    """Operator commands, keyed by the exact token typed at the prompt."""
    HELP = "?"
    QUIT = "q"
    CLEAR_SCREEN = "cls"
    LIST_CLIENTS = "list"
    DISPOSE = "dispose"
    SEND = "send"
    SEND_ASYNC = "sendasync"
    DISCONNECT_CLIENT = "remove"
    SET_PRESHARED_KEY = "psk"
    TOGGLE_DEBUG = "debug"
    UNRECOGNIZED = None

    @classmethod
    def parse(cls, line: str) -> "Command":
        """Exact, case-sensitive match; anything else is UNRECOGNIZED."""
        for command in cls:
            if command.value is not None and command.value == line:
                return command
        return cls.UNRECOGNIZED


class CommandDispatcher:
    """
    Read-dispatch-print loop.

    The server may be any object exposing list_clients, send, send_async,
    disconnect_client, dispose and the debug/preshared_key attributes.
    Client identities are asked for again on every command that needs one.
    """

    def __init__(self, server, inputs: InputCollector, sink: ConsoleSink):
        self.server = server
        self.inputs = inputs
        self.sink = sink
        self.running = False
        self._handlers = {
            Command.HELP: self.show_help,
            Command.QUIT: self.quit,
            Command.CLEAR_SCREEN: self.clear_screen,
            Command.LIST_CLIENTS: self.list_clients,
            Command.DISPOSE: self.dispose,
            Command.SEND: self.send,
            Command.SEND_ASYNC: self.send_async,
            Command.DISCONNECT_CLIENT: self.disconnect_client,
            Command.SET_PRESHARED_KEY: self.set_preshared_key,
            Command.TOGGLE_DEBUG: self.toggle_debug,
        }

    def run(self):
        """Process commands until quit or end of input."""
        self.running = True
        while self.running:
            self.sink.prompt(COMMAND_PROMPT)
            try:
                line = self.inputs.read_line()
            except EOFError:
                logger.info("End of input, leaving command loop")
                self.running = False
                break

            if not line:
                continue

            self.dispatch(line)

    def dispatch(self, line: str) -> Command:
        """
        Execute one command line.

        Errors raised by the server while a command runs are logged and do
        not leave this method.
        """
        command = Command.parse(line)
        handler = self._handlers.get(command)
        if handler is None:
            return command

        try:
            handler()
        except EOFError:
            self.running = False
        except Exception as e:
            logger.error(f"Command '{line}' failed: {e}")
        return command

    def show_help(self):
        self.sink.write("Available commands:")
        self.sink.write("  ?          help (this menu)")
        self.sink.write("  q          quit")
        self.sink.write("  cls        clear screen")
        self.sink.write("  list       list clients")
        self.sink.write("  dispose    dispose of the connection")
        self.sink.write("  send       send message to client")
        self.sink.write("  sendasync  send message to a client asynchronously")
        self.sink.write("  remove     disconnect client")
        self.sink.write("  psk        set preshared key")
        self.sink.write(f"  debug      enable/disable debug (currently {self.server.debug})")

    def quit(self):
        self.running = False

    def clear_screen(self):
        self.sink.clear()

    def list_clients(self):
        clients = self.server.list_clients()
        if clients:
            self.sink.write("Clients")
            for ip_port in clients:
                self.sink.write(f"  {ip_port}")
        else:
            self.sink.write("None")

    def dispose(self):
        # The loop keeps running; later commands hit the disposed server
        self.server.dispose()

    def _ask_message(self):
        ip_port = self.inputs.ask_string("IP:Port:", None, True)
        if not ip_port:
            return None, None
        data = self.inputs.ask_string("Data:", None, True)
        if not data:
            return None, None
        return ip_port, data

    def send(self):
        ip_port, data = self._ask_message()
        if ip_port is None:
            return
        success = self.server.send(ip_port, encode_text(data))
        self.sink.write(str(success))

    def send_async(self):
        ip_port, data = self._ask_message()
        if ip_port is None:
            return
        success = self.server.send_async(ip_port, encode_text(data)).result()
        self.sink.write(str(success))

    def disconnect_client(self):
        ip_port = self.inputs.ask_string("IP:Port:", None, True)
        self.server.disconnect_client(ip_port)

    def set_preshared_key(self):
        self.server.preshared_key = self.inputs.ask_string("Preshared key:", DEFAULT_PRESHARED_KEY, False)

    def toggle_debug(self):
        self.server.debug = not self.server.debug
        self.sink.write(f"Debug set to: {self.server.debug}")
