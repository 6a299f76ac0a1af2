"""Shell command execution with live, merged stdout/stderr capture."""

import codecs
import os
import queue
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import IO, Callable, List, Optional, Tuple

from .logging import get_logger
from .ui import display_output

logger = get_logger(__name__)

# Seconds to keep draining output after a timed-out process is killed.
KILL_GRACE_PERIOD = 2.0
# Seconds to keep draining output after the process exits on its own.
EXIT_GRACE_PERIOD = 0.5
# Upper bound on how long the consumer blocks before checking the process.
POLL_INTERVAL = 0.1

_EOF = object()


class ExecutionErrorKind(str, Enum):
    SPAWN_FAILED = "spawn-failed"
    NON_ZERO_STATUS = "non-zero-status"
    TIMED_OUT = "timed-out"


@dataclass
class ExecutionResult:
    """Captured outcome of one command run."""

    captured_output: str
    succeeded: bool
    exit_code: Optional[int] = None


class ExecutionError(Exception):
    """A command could not be started, failed, or ran too long.

    ``output`` holds everything captured before the failure so it can be
    handed back to the LLM.
    """

    def __init__(
        self,
        kind: ExecutionErrorKind,
        message: str,
        output: str = "",
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.output = output
        self.exit_code = exit_code

    @property
    def result(self) -> ExecutionResult:
        return ExecutionResult(
            captured_output=self.output, succeeded=False, exit_code=self.exit_code
        )


def shell_argv(command: str, windows: Optional[bool] = None) -> List[str]:
    """Build the interpreter invocation for a command string."""
    if windows is None:
        windows = os.name == "nt"
    if windows:
        return ["cmd", "/C", command]
    return ["sh", "-c", command]


class ProcessExecutor:
    """Runs a command to completion, echoing and capturing its output.

    stdout and stderr are drained by one reader thread each into a shared
    queue; the calling thread consumes that queue, so chunks are shown and
    captured in arrival order.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        display: Optional[Callable[[str], None]] = None,
        chunk_size: int = 1024,
    ):
        self.timeout = timeout or None
        self.display = display or display_output
        self.chunk_size = chunk_size

    def run(self, command: str) -> ExecutionResult:
        argv = shell_argv(command)
        logger.debug("Spawning %s", argv)

        try:
            process = subprocess.Popen(
                argv, stdout=subprocess.PIPE, stderr=subprocess.PIPE
            )
        except OSError as e:
            raise ExecutionError(
                ExecutionErrorKind.SPAWN_FAILED, f"Failed to execute command: {e}"
            ) from e

        deadline = time.monotonic() + self.timeout if self.timeout else None
        channel: "queue.Queue" = queue.Queue()
        readers = [
            threading.Thread(
                target=self._pump, args=(stream, channel), daemon=True
            )
            for stream in (process.stdout, process.stderr)
        ]
        for reader in readers:
            reader.start()

        try:
            output, timed_out, open_streams = self._consume(
                process, channel, len(readers), deadline
            )
            exit_code = self._wait(process, timed_out, deadline)
        except KeyboardInterrupt:
            process.kill()
            process.wait()
            raise

        if open_streams:
            # A background child inherited the pipes; its readers stay behind.
            logger.debug("Leaving %d output stream(s) open", open_streams)
        else:
            for reader in readers:
                reader.join()
            process.stdout.close()
            process.stderr.close()

        if exit_code is None or timed_out:
            raise ExecutionError(
                ExecutionErrorKind.TIMED_OUT,
                f"Command timed out after {self.timeout:g} seconds",
                output,
                exit_code,
            )
        if exit_code != 0:
            raise ExecutionError(
                ExecutionErrorKind.NON_ZERO_STATUS,
                f"Process exited with non-zero status: {exit_code}",
                output,
                exit_code,
            )

        logger.debug("Command finished with %d characters of output", len(output))
        return ExecutionResult(captured_output=output, succeeded=True, exit_code=0)

    def _pump(self, stream: IO[bytes], channel: "queue.Queue") -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                data = stream.read1(self.chunk_size)
                if not data:
                    break
                text = decoder.decode(data)
                if text:
                    channel.put(text)
            tail = decoder.decode(b"", final=True)
            if tail:
                channel.put(tail)
        except (OSError, ValueError) as e:
            logger.debug("Output stream closed early: %s", e)
        finally:
            channel.put(_EOF)

    def _consume(
        self,
        process: subprocess.Popen,
        channel: "queue.Queue",
        streams: int,
        deadline: Optional[float],
    ) -> Tuple[str, bool, int]:
        """Show and collect output until both streams end or the process is gone.

        Once the process has exited (or been killed for running past the
        deadline) output is only awaited for a short grace period, since a
        background child may hold the pipes open indefinitely.

        Returns:
            The captured text, whether the deadline was hit, and how many
            streams were still open.
        """
        chunks: List[str] = []
        drain_until: Optional[float] = None
        timed_out = False

        def take(item) -> int:
            if item is _EOF:
                return 1
            self.display(item)
            chunks.append(item)
            return 0

        while streams:
            now = time.monotonic()
            if drain_until is None:
                if process.poll() is not None:
                    drain_until = now + EXIT_GRACE_PERIOD
                elif deadline is not None and now >= deadline:
                    logger.debug("Killing process %d after timeout", process.pid)
                    process.kill()
                    timed_out = True
                    drain_until = now + KILL_GRACE_PERIOD
            elif now >= drain_until:
                # Take what already arrived, then stop waiting for more.
                for _ in range(channel.qsize()):
                    streams -= take(channel.get_nowait())
                break

            wait = POLL_INTERVAL
            if drain_until is not None:
                wait = min(wait, drain_until - now)
            elif deadline is not None:
                wait = min(wait, deadline - now)

            try:
                item = channel.get(timeout=max(wait, 0))
            except queue.Empty:
                continue
            streams -= take(item)

        return "".join(chunks), timed_out, streams

    def _wait(
        self, process: subprocess.Popen, timed_out: bool, deadline: Optional[float]
    ) -> Optional[int]:
        if timed_out:
            try:
                return process.wait(timeout=KILL_GRACE_PERIOD)
            except subprocess.TimeoutExpired:
                return None

        remaining = None
        if deadline is not None:
            remaining = max(deadline - time.monotonic(), 0)
        try:
            return process.wait(timeout=remaining)
        except subprocess.TimeoutExpired:
            # Output closed but the process kept running past the deadline.
            process.kill()
            process.wait()
            return None
