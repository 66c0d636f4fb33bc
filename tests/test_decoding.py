from __future__ import annotations

import pytest

from soursound.commands.decoding import (
    InvalidControlError,
    NudgeCallback,
    SelectCallback,
    SessionControlCallback,
    control_tag,
    decode_control_tag,
    decode_select_value,
    nudge_tag,
    parse_command,
    select_tag,
)


@pytest.mark.parametrize(
    ("content", "name", "args"),
    [
        ("Shelp", "help", []),
        ("Sshelp", "help", []),
        ("Splay soft-breeze", "play", ["soft-breeze"]),
        ("Splay  Soft   Breeze ", "play", ["Soft", "Breeze"]),
        ("SNOISES", "noises", []),
        ("Snoisemenu", "noises", []),
        ("Sremote", "remote", []),
        ("Sstatus", "status", []),
        ("Sstop", "stop", []),
        ("Sleave", "leave", []),
    ],
)
def test_parse_command_known_names(content: str, name: str, args: list[str]) -> None:
    command = parse_command(content, "S")
    assert command is not None
    assert command.name == name
    assert command.args == args


@pytest.mark.parametrize("content", ["", "S", "hello", "Sdance", "!play rain", " Splay"])
def test_parse_command_ignores_other_text(content: str) -> None:
    assert parse_command(content, "S") is None


def test_parse_command_argument_joins_words() -> None:
    command = parse_command("!play deep rumble", "!")
    assert command.argument == "deep rumble"


def test_decode_select_tag() -> None:
    callback = decode_control_tag(select_tag("preset", 42))
    assert isinstance(callback, SelectCallback)
    assert callback.target == "preset"
    assert callback.session_key == 42


def test_decode_legacy_type_selector_as_color() -> None:
    callback = decode_control_tag("select:type:42")
    assert isinstance(callback, SelectCallback)
    assert callback.target == "color"


def test_decode_nudge_tag() -> None:
    callback = decode_control_tag(nudge_tag("highpass", "dec", "coarse", 9))
    assert isinstance(callback, NudgeCallback)
    assert (callback.field, callback.direction, callback.magnitude) == ("highpass", "dec", "coarse")
    assert callback.session_key == 9


def test_decode_control_tag_operations() -> None:
    for op in ("play", "stop", "leave"):
        callback = decode_control_tag(control_tag(op, 1))
        assert isinstance(callback, SessionControlCallback)
        assert callback.operation == op


@pytest.mark.parametrize(
    "tag",
    [
        "",
        "control:pause:1",
        "control:play",
        "select:volume:1",
        "lowpass:up:fine:1",
        "bass:inc:fine:1",
        "volume:inc:huge:1",
        "volume:inc:fine:guild",
        "a:b:c:d:e",
    ],
)
def test_decode_rejects_malformed_tags(tag: str) -> None:
    with pytest.raises(InvalidControlError):
        decode_control_tag(tag)


def test_decode_select_value() -> None:
    assert decode_select_value("preset", "preset:deep-rumble") == "deep-rumble"
    assert decode_select_value("color", "color:white") == "white"
    assert decode_select_value("color", "type:pink") == "pink"


@pytest.mark.parametrize(
    ("target", "raw"),
    [
        ("preset", "deep-rumble"),
        ("preset", "color:white"),
        ("preset", "preset:"),
        ("color", "color:purple"),
        ("color", ""),
    ],
)
def test_decode_select_value_rejects(target: str, raw: str) -> None:
    with pytest.raises(InvalidControlError):
        decode_select_value(target, raw)
