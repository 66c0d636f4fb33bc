from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import IO, Any, Callable

from soursound.errors import GeneratorUnavailableError
from soursound.types import GeneratorParams

logger = logging.getLogger("soursound.generator")

_KILL_WAIT_S = 0.5

PopenFactory = Callable[..., Any]


def build_source_spec(params: GeneratorParams) -> str:
    return f"anoisesrc=color={params.noise_color}:sample_rate={params.sample_rate}"


def build_filter_spec(params: GeneratorParams) -> str:
    return (
        f"lowpass=f={params.lowpass_hz},"
        f"highpass=f={params.highpass_hz},"
        f"volume={format(params.volume, 'g')}"
    )


def build_command(ffmpeg_path: str, params: GeneratorParams) -> list[str]:
    # -re paces output at real time so the voice sink isn't flooded.
    return [
        ffmpeg_path,
        "-hide_banner",
        "-loglevel", "error",
        "-re",
        "-f", "lavfi",
        "-i", build_source_spec(params),
        "-af", build_filter_spec(params),
        "-ar", str(params.sample_rate),
        "-ac", str(params.channels),
        "-f", "s16le",
        "-acodec", "pcm_s16le",
        "pipe:1",
    ]


@dataclass
class GeneratorHandle:
    session_key: int
    process: Any
    params: GeneratorParams
    command: list[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def stdout(self) -> IO[bytes]:
        return self.process.stdout

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    def running(self) -> bool:
        return self.process.poll() is None

    def kill(self) -> None:
        if not self.running():
            return
        try:
            self.process.kill()
        except (ProcessLookupError, OSError) as exc:
            # Exited between poll() and kill().
            logger.debug("generator for session %s already gone: %s", self.session_key, exc)
            return
        try:
            self.process.wait(timeout=_KILL_WAIT_S)
        except subprocess.TimeoutExpired:
            logger.warning(
                "generator pid=%s for session %s did not exit after kill",
                self.pid,
                self.session_key,
            )

    def close_stdout(self) -> None:
        stream = self.process.stdout
        if stream is None or stream.closed:
            return
        try:
            stream.close()
        except OSError as exc:
            logger.debug("closing stdout of session %s failed: %s", self.session_key, exc)


class GeneratorSupervisor:
    """Owns at most one ffmpeg noise process per session.

    The previous process is killed, its stdout closed and the handle
    unregistered before its replacement is published, all under one lock.
    A process that has already exited when launch returns counts as a
    launch failure.
    """

    def __init__(self, ffmpeg_path: str, popen: PopenFactory | None = None) -> None:
        self.ffmpeg_path = ffmpeg_path
        self._popen: PopenFactory = popen or subprocess.Popen
        self._lock = threading.RLock()
        self._handles: dict[int, GeneratorHandle] = {}

    def start(self, session_key: int, params: GeneratorParams) -> GeneratorHandle:
        command = build_command(self.ffmpeg_path, params)
        with self._lock:
            self.terminate(session_key)
            kwargs: dict[str, Any] = {
                "stdin": subprocess.DEVNULL,
                "stdout": subprocess.PIPE,
                "stderr": subprocess.DEVNULL,
            }
            if os.name == "nt":
                kwargs["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)
            try:
                process = self._popen(command, **kwargs)
            except (OSError, ValueError) as exc:
                logger.warning("failed to launch generator for session %s: %s", session_key, exc)
                raise GeneratorUnavailableError(session_key, str(exc)) from exc
            handle = GeneratorHandle(
                session_key=session_key,
                process=process,
                params=params,
                command=command,
            )
            if not handle.running():
                handle.close_stdout()
                code = process.poll()
                logger.warning("generator for session %s exited at launch: code=%s", session_key, code)
                raise GeneratorUnavailableError(session_key, f"ffmpeg exited with code {code}")
            self._handles[session_key] = handle
        logger.info(
            "generator started: session=%s pid=%s color=%s lowpass=%s highpass=%s volume=%s",
            session_key,
            handle.pid,
            params.noise_color,
            params.lowpass_hz,
            params.highpass_hz,
            params.volume,
        )
        return handle

    def terminate(self, session_key: int) -> None:
        with self._lock:
            handle = self._handles.get(session_key)
            if handle is None:
                return
            try:
                handle.kill()
            finally:
                handle.close_stdout()
                self._handles.pop(session_key, None)
        logger.info("generator terminated: session=%s pid=%s", session_key, handle.pid)

    def terminate_all(self) -> None:
        with self._lock:
            keys = list(self._handles)
        for key in keys:
            self.terminate(key)

    def get(self, session_key: int) -> GeneratorHandle | None:
        with self._lock:
            return self._handles.get(session_key)

    def is_running(self, session_key: int) -> bool:
        handle = self.get(session_key)
        return handle is not None and handle.running()

    def live_count(self) -> int:
        with self._lock:
            handles = list(self._handles.values())
        return sum(1 for h in handles if h.running())
