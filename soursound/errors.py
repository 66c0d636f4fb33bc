from __future__ import annotations


class SourSoundError(Exception):
    """Base class for errors raised by the playback core."""


class ClientInputError(SourSoundError):
    """The issuer asked for something we can't do; reply and move on."""


class GeneratorUnavailableError(SourSoundError):
    def __init__(self, session_key: int, detail: str) -> None:
        super().__init__(f"noise generator unavailable for session {session_key}: {detail}")
        self.session_key = session_key
        self.detail = detail
