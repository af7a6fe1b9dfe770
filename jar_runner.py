"""
jar_runner.py
=============
Runs a JAR with a chosen JDK and relays the terminal to it.

Responsibilities:
  - Build the ``java [jvm args] -jar <jar> [params]`` command
  - Inject -Dfile.encoding when the caller did not pass one
  - Start the process with all three standard streams piped
  - Relay stdin → child, child stdout → stdout, child stderr → stderr
  - Wait for exit and report the child's exit code
"""

from __future__ import annotations

import io
import locale
import logging
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Iterable, List, Optional, Sequence, Tuple

import psutil

from java_manager import JavaInstallation, LauncherError

logger = logging.getLogger(__name__)

ENCODING_FLAG_PREFIX = "-dfile.encoding="

# Largest chunk handed over per read; read1() returns sooner when less is ready
CHUNK_SIZE = 8192


class SpawnFailure(LauncherError):
    """The JVM process could not be started."""

    def __init__(self, command: Sequence[str], cause: BaseException) -> None:
        self.command = list(command)
        self.cause = cause
        super().__init__(f"Failed to start {self.command[0] if self.command else '?'}: {cause}")


class RelayIOError(LauncherError):
    """A stream relay stopped on an I/O error. Logged, never raised."""

    def __init__(self, relay: str, cause: BaseException) -> None:
        self.relay = relay
        self.cause = cause
        super().__init__(f"{relay} relay failed: {cause}")


# ──────────────────────────────────────────────
#  Launch Request
# ──────────────────────────────────────────────

def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def default_encoding() -> str:
    return locale.getpreferredencoding(False) or "UTF-8"


def ensure_encoding_flag(jvm_args: Iterable[str], encoding: Optional[str] = None) -> Tuple[str, ...]:
    """Append ``-Dfile.encoding=<platform default>`` unless one is present."""
    args = _unique(jvm_args)
    if any(arg.lower().startswith(ENCODING_FLAG_PREFIX) for arg in args):
        return args
    flag = f"-Dfile.encoding={encoding or default_encoding()}"
    logger.debug("Encoding argument was not found, injecting %s", flag)
    return args + (flag,)


@dataclass(frozen=True)
class LaunchRequest:
    """What to run: JDK major version, JAR path, JVM args and JAR params."""

    version: int
    jar_path: str
    jvm_args: Tuple[str, ...] = field(default_factory=tuple)
    jar_params: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version <= 0:
            raise ValueError(f"JDK version must be a positive integer, got {self.version!r}")
        if not self.jar_path:
            raise ValueError("JAR path must not be empty")

    @classmethod
    def create(
        cls,
        version: int,
        jar_path: str,
        jvm_args: Iterable[str] = (),
        jar_params: Iterable[str] = (),
        encoding: Optional[str] = None,
    ) -> "LaunchRequest":
        """Build a request with duplicates dropped and the encoding flag ensured."""
        return cls(
            version=version,
            jar_path=jar_path,
            jvm_args=ensure_encoding_flag(jvm_args, encoding),
            jar_params=_unique(jar_params),
        )


def build_command(installation: JavaInstallation, request: LaunchRequest) -> List[str]:
    return [
        installation.path,
        *request.jvm_args,
        "-jar",
        request.jar_path,
        *request.jar_params,
    ]


# ──────────────────────────────────────────────
#  Outcome
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class ChildProcessOutcome:
    """Exit code of the JVM plus the relays that ended on an I/O error."""

    exit_code: int
    failed_relays: Tuple[str, ...] = ()

    @property
    def host_exit_code(self) -> int:
        # subprocess reports death by signal N as -N; shells use 128 + N
        if self.exit_code < 0:
            return 128 - self.exit_code
        return self.exit_code


# ──────────────────────────────────────────────
#  Relays
# ──────────────────────────────────────────────

class _Relay:
    """One stream direction, copied on its own thread."""

    def __init__(self, name: str, target: Callable[[], None]) -> None:
        self.name = name
        self.error: Optional[RelayIOError] = None
        self._target = target
        self.thread = threading.Thread(target=self._run, daemon=True, name=f"{name}-relay")

    def _run(self) -> None:
        try:
            self._target()
        except Exception as exc:
            self.error = RelayIOError(self.name, exc)
            logger.error("%s", self.error)

    def start(self) -> None:
        self.thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        self.thread.join(timeout)
        return not self.thread.is_alive()

    @property
    def done(self) -> bool:
        return not self.thread.is_alive()


def stdin_reader() -> BinaryIO:
    """
    Unbuffered binary reader over this process's stdin descriptor.

    Nothing is read ahead, so the terminal prompt and the stdin relay can read
    one after the other without losing bytes. No BufferedReader lock is held
    while a read is pending.
    """
    try:
        return open(sys.stdin.fileno(), "rb", buffering=0, closefd=False)
    except (AttributeError, OSError, ValueError) as exc:
        logger.debug("No readable stdin, the JAR gets EOF: %s", exc)
        return io.BytesIO()


def pump_output(source: BinaryIO, sink: BinaryIO) -> None:
    """
    Copy bytes from ``source`` to ``sink`` as they arrive, flushing each chunk.

    When ``sink`` fails, the rest of ``source`` is read and discarded so the
    child never blocks on a full pipe; the sink error is raised at EOF.
    """
    read = getattr(source, "read1", source.read)
    sink_error: Optional[Exception] = None
    while True:
        chunk = read(CHUNK_SIZE)
        if not chunk:
            break
        if sink_error is not None:
            continue
        try:
            sink.write(chunk)
            sink.flush()
        except Exception as exc:
            logger.debug("Output sink failed, discarding further output: %s", exc)
            sink_error = exc
    if sink_error is not None:
        raise sink_error


def pump_input(source: BinaryIO, sink: BinaryIO) -> None:
    """
    Copy bytes from ``source`` to ``sink`` until EOF, then close ``sink``.

    An unterminated last line gets a trailing newline. A pipe closed by an
    exited child ends the relay without an error.
    """
    read = getattr(source, "read1", source.read)
    last = b"\n"
    try:
        while True:
            chunk = read(CHUNK_SIZE)
            if not chunk:
                break
            sink.write(chunk)
            sink.flush()
            last = chunk[-1:]
        if last != b"\n":
            sink.write(b"\n")
            sink.flush()
        logger.debug("EOF received from user input, closing process input stream")
        sink.close()
    except (BrokenPipeError, ValueError) as exc:
        logger.debug("Process input stream closed: %s", exc)


# ──────────────────────────────────────────────
#  JarRunner
# ──────────────────────────────────────────────

class JarRunner:
    """
    Starts the JVM and supervises it until it exits.

    Args:
        stdin:  Binary stream forwarded to the child (default: stdin_reader())
        stdout: Binary stream receiving child stdout (default: sys.stdout.buffer)
        stderr: Binary stream receiving child stderr (default: sys.stderr.buffer)
    """

    # ── Seconds to drain stdout/stderr after the child exits ──
    DRAIN_TIMEOUT = 5.0

    # ── Seconds to wait for the child after Ctrl+C before killing it ──
    STOP_TIMEOUT = 30

    def __init__(
        self,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
        stderr: Optional[BinaryIO] = None,
    ) -> None:
        self.stdin = stdin if stdin is not None else stdin_reader()
        self.stdout = stdout if stdout is not None else sys.stdout.buffer
        self.stderr = stderr if stderr is not None else sys.stderr.buffer

    def launch(self, installation: JavaInstallation, request: LaunchRequest) -> ChildProcessOutcome:
        """Run ``request.jar_path`` with ``installation``."""
        logger.debug(
            "Running JAR %s with JDK %s (version %d)",
            request.jar_path, installation.path, installation.version,
        )
        return self.run(build_command(installation, request))

    def run(self, command: Sequence[str]) -> ChildProcessOutcome:
        """
        Start ``command`` and relay its streams until it exits.

        1. Start the process with piped stdin/stdout/stderr
        2. Start the three relay threads
        3. Wait for the process (not for the relays)
        4. Drain stdout/stderr for up to DRAIN_TIMEOUT seconds
        5. Close the pipes whose relays are finished

        Raises:
            SpawnFailure: the process could not be started
        """
        command = list(command)
        logger.info("Starting: %s", subprocess.list2cmdline(command))

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            logger.error("Cannot execute %s: %s", command[0], exc)
            raise SpawnFailure(command, exc) from exc
        except OSError as exc:
            logger.error("Failed to start process: %s", exc)
            raise SpawnFailure(command, exc) from exc

        relays = [
            _Relay("stdin", lambda: pump_input(self.stdin, process.stdin)),
            _Relay("stdout", lambda: pump_output(process.stdout, self.stdout)),
            _Relay("stderr", lambda: pump_output(process.stderr, self.stderr)),
        ]
        try:
            for relay in relays:
                relay.start()
            logger.debug("Process started (PID %d)", process.pid)

            exit_code = self._wait(process)
            logger.debug("Process finished with exit code %d", exit_code)

            for relay in relays[1:]:
                if not relay.join(self.DRAIN_TIMEOUT):
                    logger.warning(
                        "%s relay still busy %.0fs after exit, abandoning it",
                        relay.name, self.DRAIN_TIMEOUT,
                    )
        finally:
            self._close_pipes(process, relays)

        failed = tuple(r.name for r in relays if r.error is not None)
        return ChildProcessOutcome(exit_code=exit_code, failed_relays=failed)

    # ================================================================
    #  INTERNALS
    # ================================================================

    def _wait(self, process: subprocess.Popen) -> int:
        try:
            return process.wait()
        except KeyboardInterrupt:
            # The JVM shares our process group and got the same interrupt
            logger.info("Interrupted, waiting up to %ds for PID %d", self.STOP_TIMEOUT, process.pid)
            try:
                return process.wait(timeout=self.STOP_TIMEOUT)
            except (subprocess.TimeoutExpired, KeyboardInterrupt):
                logger.warning("Process did not stop, force-killing PID %d", process.pid)
                self._force_kill(process)
                return process.wait()

    @staticmethod
    def _force_kill(process: subprocess.Popen) -> None:
        """Force-kill the process and all of its children."""
        try:
            parent = psutil.Process(process.pid)
            children = parent.children(recursive=True)
            for child in children:
                child.kill()
            parent.kill()
            psutil.wait_procs([parent] + children, timeout=5)
            logger.info("Process tree killed")
        except (psutil.NoSuchProcess, psutil.AccessDenied, ProcessLookupError) as exc:
            logger.debug("Force kill: %s", exc)

    @staticmethod
    def _close_pipes(process: subprocess.Popen, relays: Sequence[_Relay]) -> None:
        _, stdout_relay, stderr_relay = relays
        # The stdin relay may sit in a read on our own stdin; closing the
        # child's end makes its next write fail and end the relay.
        streams = [
            (process.stdin, True),
            (process.stdout, stdout_relay.done),
            (process.stderr, stderr_relay.done),
        ]
        for stream, closable in streams:
            if stream is None or not closable:
                continue
            try:
                stream.close()
            except OSError as exc:
                logger.debug("Closing pipe: %s", exc)
