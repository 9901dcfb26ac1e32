"""Locate the secrets file pair for a stage."""
from pathlib import Path

from .models import CredentialPaths, InvocationContext

SECRETS_FILE_TEMPLATE = "secrets.{stage}.yml"
ENCRYPTED_SUFFIX = ".encrypted"


def credential_file_name(stage: str) -> str:
    """Return the plaintext file name for a stage, e.g. ``secrets.prod.yml``."""
    return SECRETS_FILE_TEMPLATE.format(stage=stage)


def resolve(ctx: InvocationContext) -> CredentialPaths:
    """
    Derive the plaintext and ciphertext paths for the context's stage.

    Layout: ``<project_root>/<secrets_subdir>/secrets.<stage>.yml`` plus the
    same path with ``.encrypted`` appended. An empty subdirectory means the
    project root. Pure: no filesystem access.

    Args:
        ctx: Invocation context carrying stage, project root and subdirectory

    Returns:
        CredentialPaths for the stage
    """
    directory = Path(ctx.project_root) / (ctx.secrets_subdir or "")
    plaintext = directory / credential_file_name(ctx.stage)
    return CredentialPaths(
        plaintext_path=plaintext,
        ciphertext_path=plaintext.with_name(plaintext.name + ENCRYPTED_SUFFIX),
    )
