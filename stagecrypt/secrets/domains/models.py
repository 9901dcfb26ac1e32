"""Domain models for stage secrets."""
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class InvocationContext:
    """Everything one command invocation needs to locate and key a stage."""
    stage: str
    password: str = field(repr=False)
    project_root: Path
    secrets_subdir: str = ""


@dataclass(frozen=True)
class CredentialPaths:
    """Plaintext/ciphertext pair for a stage. Both share one directory."""
    plaintext_path: Path
    ciphertext_path: Path
