"""Inbound event decoding.

Two grammars arrive from the gateway:

* typed commands: ``<prefix><name> [args...]``, e.g. ``Splay soft-breeze``;
* component custom ids ("control tags"), colon-delimited:

  - ``select:<preset|color>:<session>`` (selector, value carried separately)
  - ``<lowpass|highpass|volume>:<inc|dec>:<fine|coarse>:<session>``
  - ``control:<play|stop|leave>:<session>``

Tags are decoded once, up front, into one of three pydantic models; anything
that does not fit is rejected with :class:`InvalidControlError` before any
handler sees it.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from soursound.errors import ClientInputError
from soursound.types import NOISE_COLORS, NoiseColor

CommandName = Literal["help", "status", "play", "noises", "stop", "leave", "remote"]

_COMMAND_ALIASES: dict[str, str] = {
    "shelp": "help",
    "noisemenu": "noises",
}
_KNOWN_COMMANDS = {"help", "status", "play", "noises", "stop", "leave", "remote"}

_SELECT_TARGET_ALIASES = {"type": "color"}
_VALUE_PREFIX_ALIASES = {"type": "color"}


class InvalidControlError(ClientInputError):
    pass


class TypedCommand(BaseModel):
    name: CommandName
    args: list[str] = Field(default_factory=list)

    @property
    def argument(self) -> str:
        return " ".join(self.args)


class SelectCallback(BaseModel):
    kind: Literal["select"] = "select"
    target: Literal["preset", "color"]
    session_key: int


class NudgeCallback(BaseModel):
    kind: Literal["nudge"] = "nudge"
    field: Literal["lowpass", "highpass", "volume"]
    direction: Literal["inc", "dec"]
    magnitude: Literal["fine", "coarse"]
    session_key: int


class SessionControlCallback(BaseModel):
    kind: Literal["control"] = "control"
    operation: Literal["play", "stop", "leave"]
    session_key: int


ControlCallback = Annotated[
    Union[SelectCallback, NudgeCallback, SessionControlCallback],
    Field(discriminator="kind"),
]
_CONTROL_ADAPTER: TypeAdapter[ControlCallback] = TypeAdapter(ControlCallback)


def parse_command(content: str, prefix: str) -> TypedCommand | None:
    if not prefix or not content.startswith(prefix):
        return None
    words = content[len(prefix):].split()
    if not words:
        return None
    name = words[0].lower()
    name = _COMMAND_ALIASES.get(name, name)
    if name not in _KNOWN_COMMANDS:
        return None
    return TypedCommand(name=name, args=words[1:])


def select_tag(target: Literal["preset", "color"], session_key: int) -> str:
    return f"select:{target}:{session_key}"


def nudge_tag(field: str, direction: str, magnitude: str, session_key: int) -> str:
    return f"{field}:{direction}:{magnitude}:{session_key}"


def control_tag(operation: str, session_key: int) -> str:
    return f"control:{operation}:{session_key}"


def preset_value(preset_id: str) -> str:
    return f"preset:{preset_id}"


def color_value(color: NoiseColor) -> str:
    return f"color:{color}"


def _tag_payload(parts: list[str]) -> dict[str, str]:
    if len(parts) == 3 and parts[0] == "select":
        target = _SELECT_TARGET_ALIASES.get(parts[1], parts[1])
        return {"kind": "select", "target": target, "session_key": parts[2]}
    if len(parts) == 3 and parts[0] == "control":
        return {"kind": "control", "operation": parts[1], "session_key": parts[2]}
    if len(parts) == 4:
        return {
            "kind": "nudge",
            "field": parts[0],
            "direction": parts[1],
            "magnitude": parts[2],
            "session_key": parts[3],
        }
    raise InvalidControlError(f"unrecognised control tag shape: {':'.join(parts)!r}")


def decode_control_tag(tag: str) -> SelectCallback | NudgeCallback | SessionControlCallback:
    parts = str(tag or "").split(":")
    payload = _tag_payload(parts)
    try:
        return _CONTROL_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise InvalidControlError(f"invalid control tag {tag!r}") from exc


def decode_select_value(target: Literal["preset", "color"], raw: str) -> str:
    """Strip and check the ``preset:`` / ``color:`` prefix of a selector value."""
    prefix, sep, value = str(raw or "").partition(":")
    prefix = _VALUE_PREFIX_ALIASES.get(prefix, prefix)
    if not sep or prefix != target or not value:
        raise InvalidControlError(f"invalid {target} value {raw!r}")
    if target == "color" and value not in NOISE_COLORS:
        raise InvalidControlError(f"unknown noise color {value!r}")
    return value
