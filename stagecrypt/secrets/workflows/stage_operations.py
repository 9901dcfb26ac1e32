"""Workflow for encrypting, decrypting and checking a stage's secrets file."""
import logging
from pathlib import Path
from typing import Callable, Optional, Union

from ..domains.cipher import DEFAULT_SCHEME, Direction, transform
from ..domains.config_loader import Settings
from ..domains.errors import CipherError
from ..domains.models import CredentialPaths, InvocationContext
from ..domains.paths import resolve
from ..domains.preflight import check_exists

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]


def build_context(
    stage: str,
    password: str,
    project_root: Union[str, Path],
    settings: Settings,
) -> InvocationContext:
    """Combine command inputs with loaded settings into an invocation context."""
    return InvocationContext(
        stage=stage,
        password=password,
        project_root=Path(project_root),
        secrets_subdir=settings.secrets_subdir,
    )


def _require_password(ctx: InvocationContext) -> None:
    if not ctx.password:
        raise CipherError(f"Password cannot be empty (stage '{ctx.stage}')")


def encrypt_stage(
    ctx: InvocationContext,
    log: Optional[LogSink] = None,
    scheme: str = DEFAULT_SCHEME,
) -> CredentialPaths:
    """
    Encrypt ``secrets.<stage>.yml`` into ``secrets.<stage>.yml.encrypted``.

    Args:
        ctx: Invocation context
        log: Sink for the user-facing confirmation line (defaults to logger.info)
        scheme: Output format, "legacy" or "aead"

    Returns:
        The resolved credential paths

    Raises:
        CipherError: If the context carries no password
    """
    _require_password(ctx)
    log = log or logger.info
    paths = resolve(ctx)
    transform(Direction.ENCRYPT, paths.plaintext_path, paths.ciphertext_path, ctx.password, scheme=scheme)
    log(f"Successfully encrypted '{paths.plaintext_path.name}' to '{paths.ciphertext_path.name}'")
    return paths


def decrypt_stage(ctx: InvocationContext, log: Optional[LogSink] = None) -> CredentialPaths:
    """Decrypt ``secrets.<stage>.yml.encrypted`` back into ``secrets.<stage>.yml``."""
    _require_password(ctx)
    log = log or logger.info
    paths = resolve(ctx)
    transform(Direction.DECRYPT, paths.ciphertext_path, paths.plaintext_path, ctx.password)
    log(f"Successfully decrypted '{paths.ciphertext_path.name}' to '{paths.plaintext_path.name}'")
    return paths


def check_stage(ctx: InvocationContext) -> None:
    # only the plaintext file matters: decrypt, deploy, re-encrypt
    check_exists(resolve(ctx).plaintext_path)
