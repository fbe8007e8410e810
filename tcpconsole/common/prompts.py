"""Operator prompts for strings, booleans and integers with defaults."""

from typing import Callable, Optional

from .sink import ConsoleSink


class InputCollector:
    """
    Blocking prompt helpers for the operator terminal.

    Every method writes its question through the sink and reads one line
    through ``reader`` (``input`` by default). Invalid answers re-prompt;
    end of input raises ``EOFError`` to the caller.
    """

    def __init__(self, sink: ConsoleSink, reader: Callable[[], str] = input):
        self.sink = sink
        self.reader = reader

    def read_line(self) -> str:
        line = self.reader()
        return line.rstrip("\r\n")

    def ask_string(self, question: str, default: Optional[str] = None, allow_empty: bool = False) -> Optional[str]:
        """
        Ask for a string.

        Args:
            question: Prompt text
            default: Returned on blank input when non-empty
            allow_empty: Return None on blank input when there is no default

        Returns:
            The entered text, the default, or None
        """
        while True:
            text = question
            if default:
                text += f" [{default}]"
            self.sink.prompt(text + " ")

            answer = self.read_line()
            if not answer:
                if default:
                    return default
                if allow_empty:
                    return None
                continue

            return answer

    def ask_bool(self, question: str, default_yes: bool) -> bool:
        """
        Ask a yes/no question.

        Only the token that flips the default is checked, so any other
        non-blank answer keeps the default.
        """
        suffix = " [Y/n]? " if default_yes else " [y/N]? "
        self.sink.prompt(question + suffix)

        answer = self.read_line()
        if not answer:
            return default_yes

        answer = answer.lower()
        if default_yes:
            return answer not in ("n", "no")
        return answer in ("y", "yes")

    def ask_int(self, question: str, default: int, positive_only: bool, allow_zero: bool) -> int:
        """
        Ask for an integer.

        Args:
            question: Prompt text
            default: Returned on blank input
            positive_only: Re-prompt on negative values
            allow_zero: Return zero immediately

        Returns:
            The parsed integer or the default
        """
        while True:
            self.sink.prompt(f"{question} [{default}] ")

            answer = self.read_line()
            if not answer:
                return default

            try:
                value = int(answer)
            except ValueError:
                self.sink.write("Please enter a valid integer.")
                continue

            # Zero with allow_zero=False is not rejected here; it falls
            # through to the negative check and is returned below.
            if value == 0 and allow_zero:
                return 0

            if value < 0 and positive_only:
                self.sink.write("Please enter a value greater than zero.")
                continue

            return value
