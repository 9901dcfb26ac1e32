"""Guard a deployment step against a missing plaintext secrets file."""
import logging
import os
from pathlib import Path
from typing import Union

from .errors import MissingFileError

logger = logging.getLogger(__name__)


def check_exists(path: Union[str, Path]) -> None:
    """
    Verify the plaintext secrets file exists and is readable.

    Never touches the file contents and is silent on success.

    Raises:
        MissingFileError: With the expected file name and searched directory
    """
    path = Path(path)
    if not path.is_file() or not os.access(path, os.R_OK):
        raise MissingFileError(path.name, path.parent)
    logger.debug(f"Found secrets file {path}")
