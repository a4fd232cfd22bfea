"""Audio command engine: named buffers in a scratch directory plus ffmpeg runs."""

import logging
import os
import shutil
import subprocess
import tempfile
from typing import Protocol

from dub_timeline.constants import ENGINE_TIMEOUT_SECONDS
from dub_timeline.errors import EngineUnavailable

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124


class AudioEngine(Protocol):
    """Single-writer workspace of named buffers that ffmpeg-style commands act on."""

    def put(self, name: str, data: bytes) -> None:
        ...

    def get(self, name: str) -> bytes:
        ...

    def delete(self, name: str) -> None:
        """Remove a buffer; FileNotFoundError if it does not exist."""
        ...

    def run(self, args: list[str]) -> int:
        """Run one command against the workspace and return its exit code."""
        ...

    # Declared last: the method name shadows the builtin inside the class body.
    def list(self) -> list[str]:
        ...


class FFmpegEngine:
    """AudioEngine backed by the ffmpeg CLI and a private temp directory.

    Buffer names are plain file names inside the directory, and commands run
    with it as the working directory so they can refer to buffers by name.
    """

    def __init__(
        self,
        binary: str = "ffmpeg",
        root: str | None = None,
        timeout: float = ENGINE_TIMEOUT_SECONDS,
    ):
        resolved = shutil.which(binary)
        if resolved is None:
            raise EngineUnavailable(f"ffmpeg binary not found: {binary}")
        self.binary = resolved
        self.timeout = timeout
        self._owns_root = root is None
        self.root = root if root is not None else tempfile.mkdtemp(prefix="dub_timeline_")
        os.makedirs(self.root, exist_ok=True)

    def _path(self, name: str) -> str:
        if not name or os.sep in name or name in (".", "..") or (os.altsep and os.altsep in name):
            raise ValueError(f"invalid buffer name: {name!r}")
        return os.path.join(self.root, name)

    def put(self, name: str, data: bytes) -> None:
        with open(self._path(name), "wb") as f:
            f.write(data)

    def get(self, name: str) -> bytes:
        with open(self._path(name), "rb") as f:
            return f.read()

    def delete(self, name: str) -> None:
        os.remove(self._path(name))

    def run(self, args: list[str]) -> int:
        cmd = [self.binary, "-hide_banner", "-nostdin", "-loglevel", "error", "-y"] + list(args)
        logger.debug("ffmpeg %s", " ".join(args))
        try:
            result = subprocess.run(
                cmd,
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("ffmpeg timed out after %ss: %s", self.timeout, " ".join(args))
            return TIMEOUT_EXIT_CODE
        if result.returncode != 0:
            logger.debug("ffmpeg exited %d: %s", result.returncode, result.stderr.strip())
        return result.returncode

    def close(self) -> None:
        """Remove the scratch directory if this engine created it."""
        if self._owns_root and os.path.isdir(self.root):
            shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def list(self) -> list[str]:
        return sorted(
            entry for entry in os.listdir(self.root)
            if os.path.isfile(os.path.join(self.root, entry))
        )
