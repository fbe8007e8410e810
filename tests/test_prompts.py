#!/usr/bin/env python3
"""
Input Collector Tests

Test Cases:
1. String prompts: defaults, re-prompt on blank, optional empty answers
2. Boolean prompts: only the token that flips the default counts
3. Integer prompts: re-prompt on non-numeric and negative input
4. Integer prompts: zero without allow_zero is still returned
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pytest

from fakes import make_console, run_tests


def test_string_default_on_blank():
    """Test 1: Blank string answer returns the default and shows it in brackets."""
    sink, stream, inputs = make_console([""])
    assert inputs.ask_string("Server IP:", "127.0.0.1", False) == "127.0.0.1"
    assert stream.getvalue() == "Server IP: [127.0.0.1] "


def test_string_typed_value_wins():
    """Test 2: A typed string overrides the default."""
    sink, stream, inputs = make_console(["10.1.1.1"])
    assert inputs.ask_string("Server IP:", "127.0.0.1", False) == "10.1.1.1"


def test_string_required_reprompts():
    """Test 3: Without a default or allow_empty, blank answers re-prompt."""
    sink, stream, inputs = make_console(["", "", "abc"])
    assert inputs.ask_string("Name:", None, False) == "abc"
    assert stream.getvalue() == "Name: " * 3


def test_string_allow_empty_returns_none():
    """Test 4: With allow_empty and no default, blank returns None."""
    sink, stream, inputs = make_console([""])
    assert inputs.ask_string("IP:Port:", None, True) is None
    assert stream.getvalue() == "IP:Port: "


def test_bool_default_yes():
    """Test 5: Default-yes booleans only turn false on n/no."""
    cases = [
        ("", True), ("n", False), ("N", False), ("no", False), ("NO", False),
        ("y", True), ("yes", True), ("maybe", True), ("nope", True),
    ]
    for answer, expected in cases:
        sink, stream, inputs = make_console([answer])
        assert inputs.ask_bool("Accept invalid certs:", True) is expected, answer
        assert stream.getvalue() == "Accept invalid certs: [Y/n]? "


def test_bool_default_no():
    """Test 6: Default-no booleans only turn true on y/yes."""
    cases = [
        ("", False), ("y", True), ("Y", True), ("yes", True), ("YES", True),
        ("n", False), ("sure", False),
    ]
    for answer, expected in cases:
        sink, stream, inputs = make_console([answer])
        assert inputs.ask_bool("Use SSL:", False) is expected, answer
        assert stream.getvalue() == "Use SSL: [y/N]? "


def test_int_default_on_blank():
    """Test 7: Blank integer answer returns the default."""
    sink, stream, inputs = make_console([""])
    assert inputs.ask_int("Server port:", 9000, True, False) == 9000
    assert stream.getvalue() == "Server port: [9000] "


def test_int_non_numeric_reprompts():
    """Test 8: Non-numeric input prints one error and re-asks."""
    sink, stream, inputs = make_console(["abc", "9001"])
    assert inputs.ask_int("Server port:", 9000, True, False) == 9001
    output = stream.getvalue()
    assert output.count("Please enter a valid integer.") == 1
    assert output.count("Server port: [9000] ") == 2


def test_int_negative_rejected_when_positive_only():
    """Test 9: Negative values re-prompt only when positive_only is set."""
    sink, stream, inputs = make_console(["-5", "7"])
    assert inputs.ask_int("Count:", 1, True, False) == 7
    assert "Please enter a value greater than zero." in stream.getvalue()

    sink, stream, inputs = make_console(["-5"])
    assert inputs.ask_int("Offset:", 1, False, False) == -5


def test_int_zero_falls_through():
    """Test 10: Zero with allow_zero=False is still returned."""
    sink, stream, inputs = make_console(["0"])
    assert inputs.ask_int("Server port:", 9000, True, False) == 0
    assert "Please enter" not in stream.getvalue()

    sink, stream, inputs = make_console(["0"])
    assert inputs.ask_int("Retries:", 3, True, True) == 0


def test_end_of_input_propagates():
    """Test 11: End of input raises EOFError to the caller."""
    sink, stream, inputs = make_console([])
    with pytest.raises(EOFError):
        inputs.ask_string("Name:", None, False)


def main():
    return run_tests("INPUT COLLECTOR TESTS", [
        test_string_default_on_blank,
        test_string_typed_value_wins,
        test_string_required_reprompts,
        test_string_allow_empty_returns_none,
        test_bool_default_yes,
        test_bool_default_no,
        test_int_default_on_blank,
        test_int_non_numeric_reprompts,
        test_int_negative_rejected_when_positive_only,
        test_int_zero_falls_through,
        test_end_of_input_propagates,
    ])


if __name__ == '__main__':
    sys.exit(0 if main() else 1)
