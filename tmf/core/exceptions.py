"""Exception types for Takeout Metadata Fixer."""


class TMFError(Exception):
    """Base class for all errors raised by tmf."""


class SetupError(TMFError):
    """A run cannot start (bad root, missing destination, no ExifTool)."""


class SidecarError(TMFError):
    """A JSON sidecar could not be read or parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class TagWriteError(TMFError):
    """The tag writer failed or timed out for one file."""

    def __init__(self, path: str, reason: str):
        super().__init__(reason)
        self.path = path
        self.reason = reason
