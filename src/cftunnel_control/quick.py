"""Quick cloud tunnel: a temporary public URL without a registered domain."""

import asyncio
import os
import signal
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from .common.exceptions import ProcessError
from .common.logging import get_logger
from .common.utils import validate_port
from .parsing import QUICK_URL_HOST, extract_tunnel_url
from .process import find_binary, pid_alive

logger = get_logger(__name__)

QUICK_BINARY_NAME = "cloudflared"


class QuickResult(BaseModel):
    """Outcome of starting a quick tunnel."""

    model_config = ConfigDict(frozen=True)

    url: str = ""
    err: str = ""


class QuickTunnel:
    """Runs ``cloudflared tunnel --url`` as a child process.

    The PID and the public URL are also written to the state directory so a
    restarted shell can still report and stop a tunnel it did not start.
    """

    def __init__(
        self,
        binary_path: str | None = None,
        state_dir: Path | None = None,
        url_wait: float = 7.5,
        stop_timeout: float = 5.0,
    ):
        self._binary_path = binary_path
        self.state_dir = state_dir or Path.home() / ".cftunnel"
        self.url_wait = url_wait
        self.stop_timeout = stop_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._url = ""
        self._url_found = asyncio.Event()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pid_path(self) -> Path:
        return self.state_dir / "quick.pid"

    @property
    def url_path(self) -> Path:
        return self.state_dir / "quick.url"

    @property
    def binary_path(self) -> str:
        if self._binary_path is None:
            self._binary_path = find_binary(QUICK_BINARY_NAME, extra_dirs=[self.state_dir])
        return self._binary_path

    @property
    def owns_process(self) -> bool:
        """True while a child started by this instance is alive."""
        return self._process is not None and self._process.returncode is None

    async def start(self, port: int) -> QuickResult:
        """Start a quick tunnel to ``localhost:port`` and wait for its URL.

        Returns an empty URL without error when the process is up but has
        not announced its URL within ``url_wait`` seconds.
        """
        validate_port(port, "Local port")
        if self.owns_process:
            return QuickResult(err="tunnel already running, stop it first")

        try:
            process = await asyncio.create_subprocess_exec(
                self.binary_path,
                "tunnel",
                "--url",
                f"http://localhost:{port}",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except (ProcessError, OSError) as e:
            logger.error("Failed to start quick tunnel", error=str(e))
            return QuickResult(err=f"start failed: {e}")

        self._process = process
        self._url = ""
        self._url_found = asyncio.Event()
        self._write_state(self.pid_path, str(process.pid))
        logger.info("Quick tunnel started", pid=process.pid, port=port)

        self._spawn(self._scan_url(process))
        self._spawn(self._reap(process))

        try:
            await asyncio.wait_for(self._url_found.wait(), timeout=self.url_wait)
        except TimeoutError:
            logger.warning("Quick tunnel URL not announced yet", wait=self.url_wait)

        if process.returncode is not None and not self._url:
            return QuickResult(err=f"cloudflared exited with status {process.returncode}")
        return QuickResult(url=self._url)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _scan_url(self, process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        async for raw in process.stderr:
            line = raw.decode("utf-8", errors="replace")
            if QUICK_URL_HOST not in line:
                continue
            url = extract_tunnel_url(line)
            if url and process is self._process:
                self._url = url
                self._write_state(self.url_path, url)
                self._url_found.set()
                logger.info("Quick tunnel URL announced", url=url)

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        logger.info("Quick tunnel process exited", pid=process.pid, returncode=returncode)
        if process is self._process:
            self._process = None
            self._url = ""
            self._clear_state()
        self._url_found.set()

    async def stop(self) -> str:
        """Stop the tunnel, whether started here or by a previous session."""
        process = self._process
        self.url_path.unlink(missing_ok=True)

        if process is not None and process.returncode is None:
            await self._terminate_child(process)
        else:
            pid = self._read_pid()
            if pid > 0:
                await self._terminate_pid(pid)

        self._clear_state()
        self._process = None
        self._url = ""
        logger.info("Quick tunnel stopped")
        return "tunnel stopped"

    async def _terminate_child(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
        except TimeoutError:
            logger.warning("Quick tunnel did not exit, force killing", pid=process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    async def _terminate_pid(self, pid: int) -> None:
        sig = signal.SIGTERM if sys.platform == "win32" else signal.SIGINT
        try:
            os.kill(pid, sig)
        except ProcessLookupError:
            return
        except OSError as e:
            logger.error("Failed to signal quick tunnel", pid=pid, error=str(e))
            return
        for _ in range(10):
            if not pid_alive(pid):
                return
            await asyncio.sleep(0.1)
        logger.warning("Quick tunnel still alive after signal", pid=pid)

    def running(self) -> bool:
        """True if a quick tunnel process is alive."""
        if self.owns_process:
            return True
        return pid_alive(self._read_pid())

    def url(self) -> str:
        """Public URL of the running tunnel, or ``""``."""
        if self._url:
            return self._url
        try:
            return self.url_path.read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def _read_pid(self) -> int:
        try:
            text = self.pid_path.read_text(encoding="utf-8").strip()
        except OSError:
            return 0
        return int(text) if text.isdigit() else 0

    def _write_state(self, path: Path, value: str) -> None:
        try:
            self.state_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")
            path.chmod(0o600)
        except OSError as e:
            logger.warning("Could not write quick tunnel state", path=str(path), error=str(e))

    def _clear_state(self) -> None:
        self.pid_path.unlink(missing_ok=True)
        self.url_path.unlink(missing_ok=True)
