"""Tests for stage workflows and lifecycle hook registration."""
from pathlib import Path

import pytest

from stagecrypt.secrets.domains.config_loader import Settings
from stagecrypt.secrets.domains.errors import CipherError, MissingFileError, SourceNotFound
from stagecrypt.secrets.workflows.hooks import DECRYPT_EVENT, ENCRYPT_EVENT, HookRegistry, build_registry
from stagecrypt.secrets.workflows.stage_operations import build_context, decrypt_stage, encrypt_stage

SECRETS = "db_password: s3cr3t\n"


@pytest.fixture
def settings():
    return Settings(secrets_subdir="secrets")


@pytest.fixture
def project(tmp_path):
    (tmp_path / "secrets").mkdir()
    (tmp_path / "secrets" / "secrets.prod.yml").write_text(SECRETS)
    return tmp_path


@pytest.fixture
def ctx(project, settings):
    return build_context("prod", "pw", project, settings)


class TestStageOperations:
    """Test suite for encrypt_stage / decrypt_stage."""

    def test_build_context_uses_settings_subdir(self, tmp_path, settings):
        ctx = build_context("dev", "pw", str(tmp_path), settings)

        assert ctx.stage == "dev"
        assert ctx.project_root == Path(tmp_path)
        assert ctx.secrets_subdir == "secrets"

    def test_encrypt_then_decrypt(self, project, ctx):
        messages = []
        paths = encrypt_stage(ctx, log=messages.append)
        paths.plaintext_path.unlink()

        decrypt_stage(ctx, log=messages.append)

        assert paths.plaintext_path.read_text() == SECRETS
        assert messages == [
            "Successfully encrypted 'secrets.prod.yml' to 'secrets.prod.yml.encrypted'",
            "Successfully decrypted 'secrets.prod.yml.encrypted' to 'secrets.prod.yml'",
        ]

    def test_encrypt_with_aead_scheme(self, project, ctx):
        paths = encrypt_stage(ctx, log=lambda message: None, scheme="aead")

        assert paths.ciphertext_path.read_bytes().startswith(b"STGCRY02")

    def test_decrypt_without_ciphertext(self, ctx):
        messages = []

        with pytest.raises(SourceNotFound):
            decrypt_stage(ctx, log=messages.append)

        assert messages == []

    def test_default_log_sink_is_logger(self, ctx, caplog):
        with caplog.at_level("INFO"):
            encrypt_stage(ctx)

        assert "Successfully encrypted 'secrets.prod.yml'" in caplog.text

    def test_encrypt_refuses_empty_password(self, project, settings):
        ctx = build_context("prod", "", project, settings)
        messages = []

        with pytest.raises(CipherError, match="Password cannot be empty"):
            encrypt_stage(ctx, log=messages.append)

        assert messages == []
        assert not (project / "secrets" / "secrets.prod.yml.encrypted").exists()

    def test_decrypt_refuses_empty_password(self, project, ctx, settings):
        encrypt_stage(ctx, log=lambda message: None)
        (project / "secrets" / "secrets.prod.yml").unlink()

        with pytest.raises(CipherError, match="Password cannot be empty"):
            decrypt_stage(build_context("prod", "", project, settings))

        assert not (project / "secrets" / "secrets.prod.yml").exists()


class TestHookRegistry:
    """Test suite for the named-callback registry."""

    def test_run_calls_callbacks_in_order(self, ctx):
        registry = HookRegistry()
        calls = []
        registry.register("deploy:deploy", lambda c: calls.append(("first", c.stage)))
        registry.register("deploy:deploy", lambda c: calls.append(("second", c.stage)))

        assert registry.run("deploy:deploy", ctx) is True
        assert calls == [("first", "prod"), ("second", "prod")]

    def test_run_unknown_event_returns_false(self, ctx):
        assert HookRegistry().run("nothing:here", ctx) is False

    def test_register_rejects_empty_event(self):
        with pytest.raises(ValueError):
            HookRegistry().register("", lambda c: None)

    def test_callback_errors_propagate(self, ctx):
        registry = HookRegistry()
        calls = []

        def boom(c):
            raise RuntimeError("boom")

        registry.register("x", boom)
        registry.register("x", lambda c: calls.append(c))

        with pytest.raises(RuntimeError):
            registry.run("x", ctx)
        assert calls == []


class TestBuildRegistry:
    """Test suite for the default lifecycle registrations."""

    def test_default_events(self, settings):
        registry = build_registry(settings)

        assert registry.events() == sorted([ENCRYPT_EVENT, DECRYPT_EVENT, "before:deploy:cleanup"])

    def test_preflight_event_is_configurable(self, project, ctx):
        registry = build_registry(Settings(secrets_subdir="secrets", preflight_event="before:package:initialize"))

        assert registry.run("before:package:initialize", ctx) is True
        assert registry.run("before:deploy:cleanup", ctx) is False

    def test_preflight_hook_fails_without_plaintext(self, project, ctx, settings):
        (project / "secrets" / "secrets.prod.yml").unlink()
        registry = build_registry(settings)

        with pytest.raises(MissingFileError) as exc_info:
            registry.run("before:deploy:cleanup", ctx)

        assert "secrets.prod.yml" in str(exc_info.value)

    def test_encrypt_event_uses_settings_scheme(self, project, ctx):
        registry = build_registry(Settings(secrets_subdir="secrets", scheme="aead"), log=lambda m: None)

        registry.run(ENCRYPT_EVENT, ctx)

        encrypted = project / "secrets" / "secrets.prod.yml.encrypted"
        assert encrypted.read_bytes().startswith(b"STGCRY02")

    def test_scheme_override_beats_settings(self, project, ctx):
        registry = build_registry(Settings(secrets_subdir="secrets", scheme="aead"), log=lambda m: None, scheme="legacy")

        registry.run(ENCRYPT_EVENT, ctx)

        encrypted = project / "secrets" / "secrets.prod.yml.encrypted"
        assert not encrypted.read_bytes().startswith(b"STGCRY02")
