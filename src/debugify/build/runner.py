from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProcessResult:
    exit_code: int
    output: tuple[str, ...]


class ProcessRunner(Protocol):
    def run(self, command: Sequence[str], cwd: Path) -> ProcessResult: ...


def _drain(stream: IO[str], sink: list[str]) -> None:
    for line in iter(stream.readline, ""):
        line = line.rstrip("\r\n")
        if line.strip():
            sink.append(line)


class SubprocessRunner:
    """
    Run a command to completion, capturing stdout and stderr into one list.

    Both pipes are drained on their own thread so a chatty build cannot block on
    a full pipe. Lines from the two streams are not guaranteed to interleave in
    the order they were written.
    """

    def run(self, command: Sequence[str], cwd: Path) -> ProcessResult:
        cmd = [str(c) for c in command]
        logger.debug("%s (in %s)", " ".join(cmd), cwd)
        lines: list[str] = []
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            bufsize=1,
        )
        readers = [
            threading.Thread(target=_drain, args=(proc.stdout, lines), daemon=True),
            threading.Thread(target=_drain, args=(proc.stderr, lines), daemon=True),
        ]
        for t in readers:
            t.start()
        try:
            exit_code = proc.wait()
        finally:
            for t in readers:
                t.join()
            proc.stdout.close()
            proc.stderr.close()
        return ProcessResult(exit_code=exit_code, output=tuple(lines))
