"""Scoped ownership of intermediate buffers inside an AudioEngine."""

import logging

from dub_timeline.errors import CleanupWarning

logger = logging.getLogger(__name__)


class Workspace:
    """Tracks every buffer a render creates and deletes them on exit.

    Use as a context manager; cleanup runs whether the body succeeds or
    raises, and a failed deletion is logged rather than raised so it never
    masks the render's own outcome.
    """

    def __init__(self, engine):
        self.engine = engine
        self._names: list[str] = []
        self.warnings: list[CleanupWarning] = []

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def acquire(self, name: str) -> str:
        if name not in self._names:
            self._names.append(name)
        return name

    def put(self, name: str, data: bytes) -> str:
        self.acquire(name)
        self.engine.put(name, data)
        return name

    def read(self, name: str) -> bytes:
        if name not in self._names:
            raise KeyError(f"buffer not owned by this workspace: {name!r}")
        return self.engine.get(name)

    def release(self) -> list[CleanupWarning]:
        """Delete every owned buffer still present in the engine."""
        try:
            present = set(self.engine.list())
        except Exception as e:
            # Can't tell what exists; try them all.
            logger.warning("Could not list workspace buffers: %s", e)
            present = set(self._names)

        for name in reversed(self._names):
            if name not in present:
                continue
            try:
                self.engine.delete(name)
            except FileNotFoundError:
                # Acquired but never written.
                logger.debug("Workspace buffer %r was never written", name)
            except Exception as e:
                warning = CleanupWarning(name=name, cause=str(e))
                self.warnings.append(warning)
                logger.warning("%s", warning)
        self._names.clear()
        return self.warnings

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
