"""Process boundary for the cftunnel binary."""

import asyncio
import os
import shutil
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .common.exceptions import BinaryNotFoundError, ProcessError
from .common.logging import get_logger

logger = get_logger(__name__)

BINARY_NAME = "cftunnel"


def _candidate_names(name: str) -> list[str]:
    if sys.platform == "win32":
        return [f"{name}.exe", name]
    return [name]


def find_binary(name: str, extra_dirs: list[Path] | None = None) -> str:
    """Find a binary next to the running program, in PATH or common locations.

    Args:
        name: Binary name without extension
        extra_dirs: Additional directories searched last

    Returns:
        Absolute path to the binary

    Raises:
        BinaryNotFoundError: If binary cannot be found
    """
    names = _candidate_names(name)

    # Bundled next to the running program first
    program_dir = Path(sys.argv[0]).resolve().parent if sys.argv and sys.argv[0] else None
    if program_dir is not None:
        for candidate in names:
            path = program_dir / candidate
            if path.is_file() and os.access(path, os.X_OK):
                return str(path)

    for candidate in names:
        found = shutil.which(candidate)
        if found:
            return str(Path(found).resolve())

    common_dirs = [
        Path.home() / ".cftunnel",
        Path("/usr/local/bin"),
        Path("/usr/bin"),
        *(extra_dirs or []),
    ]
    for directory in common_dirs:
        for candidate in names:
            path = directory.expanduser() / candidate
            if path.is_file() and os.access(path, os.X_OK):
                return str(path)

    raise BinaryNotFoundError(f"{name} binary not found in PATH or common locations")


def absolute_binary(path: str) -> str:
    """Make an explicitly configured binary path absolute.

    Bare names are looked up in PATH; anything with a directory part is
    anchored at the current working directory.
    """
    if Path(path).is_absolute():
        return path
    if Path(path).name == path:
        found = shutil.which(path)
        if found:
            return found
    return str(Path(path).absolute())


def find_cftunnel_binary() -> str:
    """Find the cftunnel CLI binary."""
    return find_binary(BINARY_NAME)


def pid_alive(pid: int) -> bool:
    """Check whether a process with ``pid`` exists."""
    if pid <= 0:
        return False
    if sys.platform == "win32":
        # os.kill(pid, 0) terminates the process on Windows
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    except OSError:
        return False
    return True


class CommandResult(BaseModel):
    """Raw result of one cftunnel invocation."""

    model_config = ConfigDict(frozen=True)

    args: tuple[str, ...] = Field(default=(), description="Arguments after the binary")
    returncode: int = 0
    output: str = Field(default="", description="Combined stdout and stderr")

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def text(self) -> str:
        return self.output.strip()


class CommandRunner:
    """Runs cftunnel subcommands as child processes."""

    def __init__(self, binary_path: str | None = None, timeout: float = 30.0):
        """Initialize CommandRunner.

        Args:
            binary_path: Path to cftunnel binary (auto-detected on first run if None)
            timeout: Seconds before a command is killed
        """
        self._binary_path = binary_path
        self.timeout = timeout

    @property
    def binary_path(self) -> str:
        """Resolved binary path.

        Raises:
            BinaryNotFoundError: If the binary cannot be located
        """
        if self._binary_path is None:
            self._binary_path = find_cftunnel_binary()
            logger.debug("Resolved cftunnel binary", binary_path=self._binary_path)
        elif not Path(self._binary_path).is_absolute():
            # The child runs with its own directory as cwd
            self._binary_path = absolute_binary(self._binary_path)
        return self._binary_path

    async def run(self, *args: str) -> CommandResult:
        """Run ``cftunnel <args>`` and collect its combined output.

        A nonzero exit status is returned as data, not raised.

        Raises:
            BinaryNotFoundError: If the binary does not exist
            ProcessError: If the process cannot be started or times out
        """
        binary = self.binary_path
        logger.debug("Running cftunnel command", args=list(args))

        try:
            process = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
                # Relative paths inside the CLI resolve against its own directory
                cwd=str(Path(binary).parent) if Path(binary).parent.is_dir() else None,
            )
        except FileNotFoundError as e:
            logger.error("cftunnel binary missing", binary_path=binary)
            raise BinaryNotFoundError(f"Binary not found: {binary}") from e
        except OSError as e:
            logger.error("Failed to start cftunnel", error=str(e))
            raise ProcessError(f"Failed to start cftunnel: {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            logger.error("cftunnel command timed out", args=list(args), timeout=self.timeout)
            raise ProcessError(
                f"cftunnel {' '.join(args)} timed out after {self.timeout:.1f}s"
            ) from e

        result = CommandResult(
            args=tuple(args),
            returncode=process.returncode if process.returncode is not None else -1,
            output=(stdout or b"").decode("utf-8", errors="replace"),
        )
        if not result.ok:
            logger.debug(
                "cftunnel command failed", args=list(args), returncode=result.returncode
            )
        return result
