from __future__ import annotations

import allure
import pytest

from cli_exec.sanitization import SHELL_METACHARACTERS, sanitize_argument, sanitize_arguments

pytestmark = [
    allure.epic("Command Execution"),
    allure.feature("Argument Sanitization"),
]


@pytest.mark.parametrize("char", list(SHELL_METACHARACTERS))
def test_sanitize_removes_each_metacharacter(char: str) -> None:
    (result,) = sanitize_arguments([f"left{char}right"])

    assert char not in result
    assert result == "leftright"


def test_sanitize_keeps_content_around_removed_characters() -> None:
    assert sanitize_arguments(["arg1; rm -rf /"]) == ["arg1 rm -rf /"]
    assert sanitize_arguments(["$(whoami)", "a && b", "x | y > z"]) == [
        "whoami",
        "a b",
        "x y z",
    ]


def test_sanitize_normalizes_whitespace() -> None:
    assert sanitize_arguments(["  a  ", "b\t\tc", "d\n\ne"]) == ["a", "b c", "d e"]


def test_sanitize_drops_empty_and_whitespace_only_arguments() -> None:
    assert sanitize_arguments(["valid", "", "   ", "another"]) == ["valid", "another"]
    assert sanitize_arguments([";;", "&|", "{}[]<>"]) == []


def test_sanitize_deletes_brackets_from_legitimate_content() -> None:
    assert sanitize_argument("report[1].txt") == "report1.txt"


@pytest.mark.parametrize(
    "args",
    [
        [],
        ["plain"],
        ["arg1; rm -rf /", "  spaced   out  "],
        ["`echo`", "$HOME", "a ; ; b", "\t"],
        ["--model", "gemini-2.0-flash", "--prompt", "Summarize (briefly) the [diff]"],
    ],
)
def test_sanitize_is_idempotent(args: list[str]) -> None:
    once = sanitize_arguments(args)

    assert sanitize_arguments(once) == once


def test_sanitize_preserves_order_and_does_not_mutate_input() -> None:
    args = ["first", "  ", "second;", "third"]

    assert sanitize_arguments(args) == ["first", "second", "third"]
    assert args == ["first", "  ", "second;", "third"]
