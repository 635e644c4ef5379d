"""Single reachability and latency measurement."""

import asyncio
import errno
import socket
import time
from collections.abc import Awaitable, Callable

from .common.logging import get_logger
from .models import Endpoint, ProbeKind, ProbeResult

logger = get_logger(__name__)

ProbeFunc = Callable[[Endpoint, ProbeKind, float], Awaitable[ProbeResult]]

_UNREACHABLE = {
    errno.EHOSTUNREACH: "host unreachable",
    errno.ENETUNREACH: "network unreachable",
    errno.ECONNRESET: "connection reset",
    errno.ECONNREFUSED: "connection refused",
}


def classify_error(exc: BaseException, timeout: float) -> str:
    """Human-readable failure cause for a failed connect."""
    if isinstance(exc, TimeoutError):
        return f"timed out after {timeout:g}s"
    if isinstance(exc, socket.gaierror):
        return f"lookup failed: {exc.strerror or exc}"
    if isinstance(exc, ConnectionRefusedError):
        return "connection refused"
    if isinstance(exc, ConnectionResetError):
        return "connection reset"
    if isinstance(exc, OSError) and exc.errno in _UNREACHABLE:
        return _UNREACHABLE[exc.errno]
    if isinstance(exc, OSError):
        return f"unreachable: {exc.strerror or exc}"
    message = str(exc) or type(exc).__name__
    if len(message) > 200:
        message = message[:200] + "…"
    return f"probe failed: {message}"


async def probe(endpoint: Endpoint, kind: ProbeKind, timeout: float) -> ProbeResult:
    """Open a TCP connection to ``endpoint`` within ``timeout`` seconds.

    Never raises except on cancellation; every failure is classified into
    the returned result.
    """
    if not endpoint.host or endpoint.port <= 0:
        return ProbeResult(endpoint=endpoint, kind=kind, ok=False, err="invalid endpoint")

    start = time.monotonic()
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(endpoint.host, endpoint.port), timeout=timeout
        )
    except asyncio.CancelledError:
        raise
    except Exception as e:
        err = classify_error(e, timeout)
        logger.debug("Probe failed", endpoint=str(endpoint), kind=kind.value, error=err)
        return ProbeResult(endpoint=endpoint, kind=kind, ok=False, err=err)

    latency_ms = int(round((time.monotonic() - start) * 1000))
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        # Peer may reset the socket right after accept
        pass

    logger.debug("Probe succeeded", endpoint=str(endpoint), kind=kind.value, latency_ms=latency_ms)
    return ProbeResult(endpoint=endpoint, kind=kind, ok=True, latency_ms=latency_ms)
