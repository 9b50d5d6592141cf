# visionhub/services/process_launcher.py
"""
External process lifecycle as explicit outcomes.

  spawn(argv) -> Spawned(process) | Failed(reason)
  wait(spawned) -> Exited(code, stderr_tail) | Failed(reason)

wait() drains stderr line by line while the process runs (ffmpeg writes all
of its progress there) and keeps the last few lines for error reporting.
"""

import asyncio
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Union

from visionhub.utils.logger import get_logger

logger = get_logger(__name__)

STDERR_TAIL_LINES = 20
_LINE_BREAK = re.compile(rb"[\r\n]")


@dataclass
class Spawned:
    process: object
    label: str = ""

    @property
    def pid(self):
        return getattr(self.process, "pid", None)


@dataclass(frozen=True)
class Exited:
    code: int
    stderr_tail: tuple = field(default=())

    @property
    def ok(self) -> bool:
        return self.code == 0


@dataclass(frozen=True)
class Failed:
    reason: str


SpawnOutcome = Union[Spawned, Failed]
ExitOutcome = Union[Exited, Failed]


class ProcessLauncher:
    async def spawn(self, argv: list[str], label: str = "") -> SpawnOutcome:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return Failed(f"{argv[0]}: {e}")
        logger.debug(f"Spawned {argv[0]} for {label} (pid {process.pid})")
        return Spawned(process, label)

    async def wait(self, spawned: Spawned) -> ExitOutcome:
        process = spawned.process
        tail = deque(maxlen=STDERR_TAIL_LINES)
        try:
            stderr = getattr(process, "stderr", None)
            if stderr is not None:
                # ffmpeg progress lines end in \r, so read chunks rather than lines
                buffer = b""
                while True:
                    chunk = await stderr.read(4096)
                    if not chunk:
                        break
                    buffer += chunk
                    *lines, buffer = _LINE_BREAK.split(buffer)
                    for raw in lines:
                        self._record_line(spawned, raw, tail)
                self._record_line(spawned, buffer, tail)
            code = await process.wait()
        except Exception as e:
            return Failed(f"lost track of process {spawned.pid}: {e}")
        return Exited(code, tuple(tail))

    @staticmethod
    def _record_line(spawned: Spawned, raw: bytes, tail: deque):
        line = raw.decode("utf-8", errors="replace").strip()
        if line:
            tail.append(line)
            logger.debug(f"FFMPEG ({spawned.label}): {line}")

    def terminate(self, spawned: Spawned) -> bool:
        """Ask the process to exit (SIGTERM). False if it was already gone."""
        try:
            spawned.process.terminate()
        except ProcessLookupError:
            return False
        return True

    def kill(self, spawned: Spawned):
        try:
            spawned.process.kill()
        except ProcessLookupError:
            pass
