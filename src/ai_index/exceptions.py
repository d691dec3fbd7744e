from dataclasses import dataclass
from pathlib import Path


@dataclass(eq=False)
class AiIndexError(Exception):
    """Base exception for errors in the ai_index module."""

    message: str = "ai_index failure."

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class GitCommandError(AiIndexError):
    """Raised when a git command fails."""

    command: str = ""
    returncode: int = 0
    stderr: str = ""
    message: str = "git command failed."

    def __str__(self) -> str:
        return f"{self.message} command={self.command!r} returncode={self.returncode} stderr={self.stderr.strip()!r}"


@dataclass(eq=False)
class NotAGitRepositoryError(AiIndexError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path = Path()
    message: str = "The specified directory is not a Git repository."

    def __str__(self) -> str:
        return f"{self.message} folder={self.folder}"


@dataclass(eq=False)
class BlobReadError(AiIndexError):
    """Raised when the content of a tracked file cannot be read."""

    path: str = ""
    message: str = "Unable to read file content."

    def __str__(self) -> str:
        return f"{self.message} path={self.path}"


@dataclass(eq=False)
class MissingPackError(AiIndexError):
    """Raised when the combiner needs a pack that was not written in this run."""

    name: str = ""
    expected: Path = Path()
    message: str = "Named pack is missing from the output directory."

    def __str__(self) -> str:
        return f"{self.message} name={self.name} expected={self.expected}"


@dataclass(eq=False)
class ConfigFileError(AiIndexError):
    """Raised when the YAML catalog configuration cannot be loaded."""

    file: Path = Path()
    message: str = "Invalid catalog configuration file."

    def __str__(self) -> str:
        return f"{self.message} file={self.file}"
