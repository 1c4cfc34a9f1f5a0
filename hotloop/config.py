"""
config.py - Runtime configuration for hotloop.

The CLI layer fills a :class:`Config`; the restart engine only reads it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from hotloop.errors import ConfigError

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_DEBOUNCE = 0.5  # seconds
DEFAULT_KILL_TIMEOUT = 5.0  # seconds
DEFAULT_BUILD_COMMAND = ("go", "build", "-o", "{output}", ".")
DEFAULT_RUN_COMMAND = ("{output}",)
DEFAULT_EXTENSIONS = (".go",)
DEFAULT_MANIFESTS = ("go.mod", "go.sum")
DEFAULT_IGNORED_DIRS = (
    # version control
    ".git",
    ".hg",
    ".svn",
    # editors
    ".idea",
    ".vscode",
    # vendored dependencies
    "vendor",
    "node_modules",
    # build output
    "bin",
    "build",
    "dist",
    "tmp",
    # caches
    ".cache",
    "__pycache__",
)

ARTIFACT_NAME = ".hotloop-app"
OUTPUT_PLACEHOLDER = "{output}"


@dataclass
class Config:
    """Everything the orchestrator needs to know about one project.

    Parameters:
        root:          Directory to watch; also the cwd of build and run.
        build_command: Argument list for the build step.  ``{output}`` is
                       replaced by the path the build must write to.  An
                       empty list disables the build step.
        run_command:   Argument list that starts the target.  ``{output}``
                       is replaced by the artifact path.
        debounce:      Quiet interval in seconds before a restart fires.
        extensions:    Source-file suffixes that trigger a restart.
        manifests:     Dependency-manifest file names that trigger a restart.
        ignored_dirs:  Directory names excluded anywhere in the tree.
        recursive:     Watch subdirectories as well as the root.
        kill_timeout:  Grace period before a polite stop is escalated.
        verbose:       Enable debug logging.
    """

    root: Path = field(default_factory=Path.cwd)
    build_command: list[str] = field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND))
    run_command: list[str] = field(default_factory=lambda: list(DEFAULT_RUN_COMMAND))
    debounce: float = DEFAULT_DEBOUNCE
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    manifests: tuple[str, ...] = DEFAULT_MANIFESTS
    ignored_dirs: tuple[str, ...] = DEFAULT_IGNORED_DIRS
    recursive: bool = True
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    verbose: bool = False

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def artifact_path(self) -> Path:
        """Where the running binary lives for the current session."""
        name = ARTIFACT_NAME + (".exe" if os.name == "nt" else "")
        return self.root / name

    @property
    def staging_path(self) -> Path:
        """Where the build writes before the old process is stopped."""
        return self.artifact_path.with_name(self.artifact_path.name + ".next")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def expand(command: list[str], output: Path) -> list[str]:
        """Substitute ``{output}`` in every argument of *command*."""
        return [arg.replace(OUTPUT_PLACEHOLDER, str(output)) for arg in command]

    @property
    def build_output_used(self) -> bool:
        """True when the build command writes the artifact."""
        return any(OUTPUT_PLACEHOLDER in arg for arg in self.build_command)

    def validate(self) -> None:
        """Raise :class:`ConfigError` if the configuration can't work."""
        if self.debounce <= 0:
            raise ConfigError(f"debounce must be positive, got {self.debounce}")
        if self.kill_timeout <= 0:
            raise ConfigError(f"kill timeout must be positive, got {self.kill_timeout}")
        if not self.run_command:
            raise ConfigError("run command is empty")
        if any(OUTPUT_PLACEHOLDER in arg for arg in self.run_command) and not self.build_output_used:
            raise ConfigError(
                f"run command uses {OUTPUT_PLACEHOLDER} but the build command never writes it"
            )
        if not self.extensions and not self.manifests:
            raise ConfigError("nothing to watch: no extensions and no manifests")
