"""Fatal error kinds of a bake. Nothing here is recovered locally."""

from __future__ import annotations

from typing import Optional, Sequence


class BakeError(RuntimeError):
    """Base class for every error that aborts a bake."""


class ToolchainMissingError(BakeError):
    """The external layered-image tool could not be started."""


class ToolInvocationError(BakeError):
    """The external tool exited non-zero or did not produce its outputs."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        details = [message]
        if command:
            details.append("command: " + " ".join(str(part) for part in command))
        if stdout.strip():
            details.append("stdout:\n" + stdout.strip())
        if stderr.strip():
            details.append("stderr:\n" + stderr.strip())
        super().__init__("\n".join(details))
        self.command = list(command) if command else []
        self.stdout = stdout
        self.stderr = stderr


class MetadataError(BakeError):
    """Frame metadata could not be decoded or violates its schema."""


class StructureError(BakeError):
    """An authored file or the merged asset set breaks a structural rule."""


class ImageDecodeError(BakeError):
    """A PNG could not be read."""


class PackError(BakeError):
    """A bitmap could not be placed into any atlas page."""


class RouteError(BakeError):
    """A packed name could not be matched to a sprite, font or animation."""


class FontError(BakeError):
    """A font could not be decoded or rasterized."""


class BakeIOError(BakeError):
    """A filesystem read or write failed."""
