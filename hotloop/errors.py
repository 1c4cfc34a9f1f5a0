"""Exception types raised by the hotloop restart engine."""


class HotloopError(Exception):
    """Base exception for all hotloop errors."""


class ConfigError(HotloopError):
    """Raised when the configuration is unusable."""


class WatchSetupError(HotloopError):
    """Raised when the watch root cannot be watched. Fatal at startup."""


class WatchRuntimeError(HotloopError):
    """A failure of an already-established watch. Logged, never fatal."""


class BuildError(HotloopError):
    """Raised when the build step fails or cannot be executed."""


class SpawnError(HotloopError):
    """Raised when the freshly built target cannot be started."""


class TerminationError(HotloopError):
    """Raised when a managed process tree could not be terminated."""
