"""HTTP mirroring of release tarballs."""
from __future__ import annotations

from email.utils import formatdate, parsedate_to_datetime
from enum import Enum
from pathlib import Path
import os
import shutil
import urllib.error
import urllib.request

from .console import Console

CHUNK_SIZE = 64 * 1024
USER_AGENT = "protoboot"


class NetworkError(RuntimeError):
    """Raised when a download fails."""


class MirrorOutcome(str, Enum):
    DOWNLOADED = "downloaded"
    NOT_MODIFIED = "not-modified"


class Downloader:
    """Fetch-if-newer downloads.

    The destination is only replaced when the remote resource is newer than
    the local copy or the local copy is absent. Data is streamed into
    ``<dest>.part`` first so an interrupted transfer never leaves a truncated
    file at the destination.
    """

    def __init__(self, console: Console | None = None, *, timeout: float | None = None) -> None:
        self._console = console or Console("none")
        self._timeout = timeout

    def _build_request(self, url: str, destination: Path) -> urllib.request.Request:
        headers = {"User-Agent": USER_AGENT}
        # zero-byte leftovers are fetched in full
        if destination.is_file() and destination.stat().st_size > 0:
            headers["If-Modified-Since"] = formatdate(destination.stat().st_mtime, usegmt=True)
        return urllib.request.Request(url, headers=headers)

    def mirror(self, url: str, destination: Path | str) -> MirrorOutcome:
        destination = Path(destination)
        request = self._build_request(url, destination)
        partial = destination.with_name(destination.name + ".part")
        self._console.debug(f"GET {url}")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                with partial.open("wb") as handle:
                    shutil.copyfileobj(response, handle, CHUNK_SIZE)
                last_modified = response.headers.get("Last-Modified")
        except urllib.error.HTTPError as exc:
            partial.unlink(missing_ok=True)
            if exc.code == 304:
                self._console.info(f"{destination.name} is up to date ({destination.stat().st_size} bytes)")
                return MirrorOutcome.NOT_MODIFIED
            raise NetworkError(f"Cannot download {url}: HTTP {exc.code} {exc.reason}") from exc
        except (urllib.error.URLError, OSError) as exc:
            partial.unlink(missing_ok=True)
            raise NetworkError(f"Cannot download {url}: {exc}") from exc

        os.replace(partial, destination)
        if last_modified:
            try:
                timestamp = parsedate_to_datetime(last_modified).timestamp()
            except (TypeError, ValueError):
                timestamp = None
            if timestamp is not None:
                os.utime(destination, (timestamp, timestamp))
        self._console.info(f"Downloaded {url} ({destination.stat().st_size} bytes)")
        return MirrorOutcome.DOWNLOADED
