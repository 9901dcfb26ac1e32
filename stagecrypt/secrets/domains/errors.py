"""Exceptions raised by stagecrypt operations."""
from pathlib import Path
from typing import Union


class StageCryptError(Exception):
    """Base class for every error surfaced to the invoking host."""
    pass


class ConfigurationError(StageCryptError):
    """Configuration error exception."""
    pass


class SourceNotFound(StageCryptError):
    """Input file for the requested direction is missing or unreadable."""
    pass


class CipherError(StageCryptError):
    """Wrong password, corrupted ciphertext, or cipher setup failure."""
    pass


class DestinationWriteError(StageCryptError):
    """Output file could not be created or written."""
    pass


class MissingFileError(StageCryptError):
    """Plaintext secrets file for the stage is not present."""

    def __init__(self, filename: str, directory: Union[str, Path]):
        self.filename = filename
        self.directory = str(directory)
        super().__init__(
            f"Couldn't find the secrets file for this stage: {filename} "
            f"(looking in {self.directory})"
        )
