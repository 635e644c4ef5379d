"""Desktop application version and update check."""

import asyncio
import json
import re
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Any

from .common.logging import get_logger
from .models import UpdateInfo

logger = get_logger(__name__)

UPDATE_TIMEOUT = 5.0

Fetcher = Callable[[str], dict[str, Any]]


def fetch_latest_release(url: str) -> dict[str, Any]:
    """GET the release document at ``url`` (blocking)."""
    request = urllib.request.Request(url, headers={"Accept": "application/vnd.github+json"})
    with urllib.request.urlopen(request, timeout=UPDATE_TIMEOUT) as response:
        data = json.loads(response.read().decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("release document is not an object")
    return data


def version_tuple(version: str) -> tuple[int, ...]:
    """``"v1.2.10-beta"`` -> ``(1, 2, 10)``; non-numeric versions give ``()``."""
    numbers = re.findall(r"\d+", version.split("-", 1)[0])
    return tuple(int(n) for n in numbers)


def is_newer(latest: str, current: str) -> bool:
    latest_parts, current_parts = version_tuple(latest), version_tuple(current)
    if not latest_parts or not current_parts:
        # Development builds never prompt
        return False
    return latest_parts > current_parts


async def check_app_update(
    current_version: str, url: str, fetch: Fetcher = fetch_latest_release
) -> UpdateInfo:
    """Compare ``current_version`` against the latest published release.

    Failures are reported in ``UpdateInfo.err``; this never raises.
    """
    try:
        release = await asyncio.to_thread(fetch, url)
    except (urllib.error.URLError, OSError) as e:
        logger.warning("Update check request failed", error=str(e))
        return UpdateInfo(current_version=current_version, err="network request failed")
    except ValueError as e:
        logger.warning("Update check response invalid", error=str(e))
        return UpdateInfo(current_version=current_version, err="failed to parse response")

    latest = str(release.get("tag_name") or "").removeprefix("v")
    if not latest:
        return UpdateInfo(current_version=current_version, err="failed to parse response")

    return UpdateInfo(
        current_version=current_version,
        latest_version=latest,
        has_update=is_newer(latest, current_version),
        release_url=str(release.get("html_url") or ""),
    )
