"""Run build tool goals as subprocesses."""

import asyncio
import logging
import os
import signal
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from runner_compare.models.config import DEFAULT_TIMEOUT_SECONDS

log = logging.getLogger(__name__)
output_log = logging.getLogger("runner_compare.build_output")

BUILD_TOOL = "mvn"
LAUNCH_FAILURE_EXIT_CODE = -1
TIMEOUT_EXIT_CODE = -int(signal.SIGKILL)
STREAM_LIMIT = 1024 * 1024

# Plugins that add runtime and console noise without affecting test results.
QUIET_OPTIONS: Sequence[str] = (
    "-B",
    "-Dcobertura.skip=true",
    "-Djacoco.skip=true",
    "-Drat.skip=true",
    "-Denforcer.skip=true",
    "-Dmaven.javadoc.skip=true",
    "-Dcheckstyle.skip=true",
    "-Dpmd.skip=true",
    "-Dcpd.skip=true",
    "-Dfindbugs.skip=true",
)

LineCallback = Callable[[str], None]


@dataclass(frozen=True, kw_only=True)
class InvocationOutcome:
    """How a build tool invocation ended.

    ``error`` is set only for infrastructure failures such as a missing
    executable; a failing build is reported through ``exit_code`` alone.
    """

    exit_code: int
    timed_out: bool = False
    error: str | None = None

    @property
    def failed(self) -> bool:
        """Whether the invocation did not exit cleanly."""
        return self.exit_code != 0


@dataclass(frozen=True, kw_only=True)
class ProcessInvoker:
    """Invokes build tool goals against a descriptor."""

    build_tool_home: Path | None = None
    options: Sequence[str] = QUIET_OPTIONS
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    verbose: bool = False

    @property
    def executable(self) -> str:
        """The build tool command to launch."""
        if self.build_tool_home is None:
            return BUILD_TOOL
        return str(self.build_tool_home / "bin" / BUILD_TOOL)

    def command(
        self,
        descriptor: Path,
        goals: Sequence[str],
        extra_options: Sequence[str] = (),
    ) -> Sequence[str]:
        """Build the argument vector for an invocation."""
        return [
            self.executable,
            "-f",
            str(descriptor),
            *self.options,
            *extra_options,
            *goals,
        ]

    def environment(self) -> Mapping[str, str]:
        """Environment for the subprocess."""
        env = dict(os.environ)
        if self.build_tool_home is not None:
            env["MAVEN_HOME"] = str(self.build_tool_home)
        return env

    async def invoke(
        self,
        descriptor: Path,
        goals: Sequence[str],
        on_line: LineCallback,
        *,
        extra_options: Sequence[str] = (),
        timeout: float | None = None,
    ) -> InvocationOutcome:
        """Run ``goals`` against ``descriptor`` and stream output to ``on_line``.

        Standard error is merged into standard output. The subprocess runs in
        its own process group so that a timeout or cancellation kills the
        build together with every test JVM it forked.

        Args:
            descriptor: Build descriptor to run against
            goals: Goals to run, in order
            on_line: Called with each output line, without its line ending
            extra_options: Options appended after the fixed quiet options
            timeout: Seconds before the build is killed (default: invoker's)

        Returns:
            The exit status, with ``timed_out`` set when the deadline hit

        """
        deadline = self.timeout if timeout is None else timeout
        argv = self.command(descriptor, goals, extra_options)
        log.debug("Launching: %s", " ".join(argv))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=descriptor.parent,
                env=self.environment(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            log.error("Failed to launch %s: %s", argv[0], e)
            return InvocationOutcome(
                exit_code=LAUNCH_FAILURE_EXIT_CODE, error=f"Failed to launch: {e}"
            )

        try:
            async with asyncio.timeout(deadline):
                await self._stream(process, descriptor, on_line)
                exit_code = await process.wait()
        except TimeoutError:
            log.warning(
                "Build for %s did not complete within %s seconds, killing it",
                descriptor,
                deadline,
            )
            await _kill(process)
            return InvocationOutcome(exit_code=TIMEOUT_EXIT_CODE, timed_out=True)
        except OSError as e:
            log.error("I/O error while running build for %s: %s", descriptor, e)
            await _kill(process)
            return InvocationOutcome(
                exit_code=LAUNCH_FAILURE_EXIT_CODE, error=f"I/O error: {e}"
            )
        finally:
            if process.returncode is None:
                await _kill(process)

        return InvocationOutcome(exit_code=exit_code)

    async def _stream(
        self,
        process: asyncio.subprocess.Process,
        descriptor: Path,
        on_line: LineCallback,
    ) -> None:
        assert process.stdout is not None
        while raw := await _read_line(process.stdout):
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            on_line(line)
            if self.verbose:
                output_log.info("[%s] %s", descriptor.parent.name, line)


async def _read_line(reader: asyncio.StreamReader) -> bytes:
    """Read one line of any length, or ``b""`` at end of stream.

    Lines longer than the reader's buffer limit are collected in chunks
    instead of failing the read.
    """
    chunks: list[bytes] = []
    while True:
        try:
            chunks.append(await reader.readuntil(b"\n"))
        except asyncio.IncompleteReadError as e:
            chunks.append(e.partial)
        except asyncio.LimitOverrunError as e:
            chunks.append(await reader.readexactly(e.consumed))
            continue
        return b"".join(chunks)


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill a subprocess and its process group, then reap it."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.kill()
    await asyncio.shield(process.wait())
