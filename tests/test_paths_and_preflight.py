"""Tests for credential path resolution and the preflight check."""
import os
from pathlib import Path

import pytest

from stagecrypt.secrets.domains.errors import MissingFileError
from stagecrypt.secrets.domains.models import InvocationContext
from stagecrypt.secrets.domains.paths import credential_file_name, resolve
from stagecrypt.secrets.domains.preflight import check_exists
from stagecrypt.secrets.workflows.stage_operations import check_stage


def make_context(root, stage="prod", subdir="secrets", password="hunter2"):
    return InvocationContext(stage=stage, password=password, project_root=Path(root), secrets_subdir=subdir)


class TestResolve:
    """Test suite for resolving the plaintext/ciphertext pair."""

    def test_resolve_prod_stage(self, tmp_path):
        """Test the documented example layout."""
        paths = resolve(make_context(tmp_path))

        assert paths.plaintext_path == tmp_path / "secrets" / "secrets.prod.yml"
        assert paths.ciphertext_path == tmp_path / "secrets" / "secrets.prod.yml.encrypted"

    def test_ciphertext_is_plaintext_plus_suffix(self, tmp_path):
        """Test the ciphertext path is always the plaintext path + '.encrypted'."""
        for stage in ("dev", "staging", "eu-west_1"):
            paths = resolve(make_context(tmp_path, stage=stage, subdir="config/secrets"))
            assert str(paths.ciphertext_path) == str(paths.plaintext_path) + ".encrypted"
            assert paths.ciphertext_path.parent == paths.plaintext_path.parent

    def test_empty_subdir_defaults_to_project_root(self, tmp_path):
        """Test an empty secrets subdirectory resolves to the project root."""
        paths = resolve(make_context(tmp_path, stage="dev", subdir=""))

        assert paths.plaintext_path == tmp_path / "secrets.dev.yml"

    def test_resolve_performs_no_io(self, tmp_path):
        """Test resolving paths for a nonexistent root neither fails nor creates anything."""
        root = tmp_path / "does-not-exist"
        paths = resolve(make_context(root))

        assert paths.plaintext_path.name == "secrets.prod.yml"
        assert not root.exists()

    def test_credential_file_name(self):
        assert credential_file_name("qa") == "secrets.qa.yml"

    def test_context_repr_hides_password(self, tmp_path):
        """Test the password does not leak through the context repr."""
        assert "hunter2" not in repr(make_context(tmp_path))


class TestPreflight:
    """Test suite for the plaintext existence check."""

    def test_check_exists_passes_silently(self, tmp_path):
        secrets_file = tmp_path / "secrets.prod.yml"
        secrets_file.write_text("db_password: x\n")

        assert check_exists(secrets_file) is None
        assert secrets_file.read_text() == "db_password: x\n"

    def test_check_exists_missing_file(self, tmp_path):
        with pytest.raises(MissingFileError) as exc_info:
            check_exists(tmp_path / "secrets.prod.yml")

        assert exc_info.value.filename == "secrets.prod.yml"
        assert exc_info.value.directory == str(tmp_path)
        assert "secrets.prod.yml" in str(exc_info.value)
        assert str(tmp_path) in str(exc_info.value)

    def test_check_exists_rejects_directory(self, tmp_path):
        """Test a directory named like the secrets file does not count."""
        (tmp_path / "secrets.prod.yml").mkdir()

        with pytest.raises(MissingFileError):
            check_exists(tmp_path / "secrets.prod.yml")

    @pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root can read any file")
    def test_check_exists_unreadable_file(self, tmp_path):
        secrets_file = tmp_path / "secrets.prod.yml"
        secrets_file.write_text("x: 1\n")
        secrets_file.chmod(0o000)
        try:
            with pytest.raises(MissingFileError):
                check_exists(secrets_file)
        finally:
            secrets_file.chmod(0o600)

    def test_check_stage_only_looks_at_plaintext(self, tmp_path):
        """Test an encrypted file alone does not satisfy the preflight check."""
        secrets_dir = tmp_path / "secrets"
        secrets_dir.mkdir()
        (secrets_dir / "secrets.prod.yml.encrypted").write_bytes(b"\x00" * 16)

        with pytest.raises(MissingFileError) as exc_info:
            check_stage(make_context(tmp_path))

        assert "secrets.prod.yml" in str(exc_info.value)
        assert str(secrets_dir) in str(exc_info.value)

    def test_check_stage_passes_with_plaintext(self, tmp_path):
        secrets_dir = tmp_path / "secrets"
        secrets_dir.mkdir()
        (secrets_dir / "secrets.prod.yml").write_text("api_key: abc\n")

        check_stage(make_context(tmp_path))
