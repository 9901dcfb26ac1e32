"""CLI entrypoint for stagecrypt."""
import os
import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from stagecrypt.secrets.domains.cipher import SCHEMES

from .validators import validate_password, validate_stage

VERSION = "0.1.0"
PASSWORD_ENV_VAR = "STAGECRYPT_PASSWORD"

# Configure logging to stderr; user-facing results go to stdout
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _load_settings(args):
    from stagecrypt.secrets.domains.config_loader import load_settings

    return load_settings(args.project_root, args.config)


def _context(args, settings, password: str = ""):
    from stagecrypt.secrets.workflows.stage_operations import build_context

    return build_context(args.stage, password, Path(args.project_root).resolve(), settings)


def cmd_version(args):
    """Show version information."""
    print(f"stagecrypt {VERSION}")


def cmd_encrypt(args):
    """Encrypt the secrets file for a stage."""
    from stagecrypt.secrets.workflows.hooks import ENCRYPT_EVENT, build_registry

    validate_stage(args.stage)
    validate_password(args.password)

    settings = _load_settings(args)
    registry = build_registry(settings, log=print, scheme=args.scheme)
    registry.run(ENCRYPT_EVENT, _context(args, settings, args.password))


def cmd_decrypt(args):
    """Decrypt the secrets file for a stage."""
    from stagecrypt.secrets.workflows.hooks import DECRYPT_EVENT, build_registry

    validate_stage(args.stage)
    validate_password(args.password)

    settings = _load_settings(args)
    registry = build_registry(settings, log=print)
    registry.run(DECRYPT_EVENT, _context(args, settings, args.password))


def cmd_check(args):
    """Fail unless the plaintext secrets file for a stage exists."""
    from stagecrypt.secrets.workflows.stage_operations import check_stage

    validate_stage(args.stage)

    settings = _load_settings(args)
    check_stage(_context(args, settings))


def cmd_hook(args):
    """Fire a lifecycle event on behalf of a host workflow."""
    from stagecrypt.secrets.workflows.hooks import DECRYPT_EVENT, ENCRYPT_EVENT, build_registry

    validate_stage(args.stage)
    if args.event in (ENCRYPT_EVENT, DECRYPT_EVENT):
        validate_password(args.password)

    settings = _load_settings(args)
    registry = build_registry(settings, log=print)
    if not registry.run(args.event, _context(args, settings, args.password or "")):
        print(f"No hooks registered for '{args.event}'", file=sys.stderr)
        print(f"Registered events: {', '.join(registry.events())}", file=sys.stderr)


def cmd_config_show(args):
    """Show the resolved config file and settings."""
    settings = _load_settings(args)

    print(f"Config path: {settings.config_path}")
    print(f"Secrets directory: {settings.secrets_subdir or '<project root>'}")
    print(f"Cipher scheme: {settings.scheme}")
    print(f"Preflight event: {settings.preflight_event}")


def main(argv: Optional[List[str]] = None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (missing files, wrong password, bad config, etc.)
        2 - Usage errors (invalid arguments, invalid stage name, etc.)
    """
    parser = argparse.ArgumentParser(
        prog="stagecrypt",
        description="stagecrypt - encrypt and decrypt per-stage secrets files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (missing file, wrong password, invalid config, etc.)
  2 - Usage error (invalid arguments, invalid stage name, etc.)

Environment variables:
  STAGECRYPT_PASSWORD - Password used when -p/--password is omitted
  STAGECRYPT_CONFIG   - Path to the config file (overrides project lookup)

Files:
  <project-root>/stagecrypt.yml           - Configuration
  <secrets dir>/secrets.<stage>.yml       - Plaintext secrets (keep out of VCS)
  <secrets dir>/secrets.<stage>.yml.encrypted - Encrypted secrets (commit this)
        """
    )
    parser.add_argument(
        "--project-root",
        default=".",
        help="Project root directory (default: current directory)"
    )
    parser.add_argument(
        "--config",
        help="Path to stagecrypt.yml (default: <project-root>/stagecrypt.yml)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging on stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    password_from_env = os.getenv(PASSWORD_ENV_VAR)

    def add_stage_options(sub, password_required):
        sub.add_argument(
            "-s", "--stage",
            required=True,
            help="Stage of the secrets file (e.g. dev, prod)"
        )
        sub.add_argument(
            "-p", "--password",
            required=password_required and not password_from_env,
            default=password_from_env,
            help=f"Password for the secrets file (default: ${PASSWORD_ENV_VAR})"
        )

    # version command
    _version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of stagecrypt"
    )

    # encrypt command
    encrypt_parser = subparsers.add_parser(
        "encrypt",
        help="Encrypt a secrets file for a specific stage",
        description="Encrypt secrets.<stage>.yml into secrets.<stage>.yml.encrypted."
    )
    add_stage_options(encrypt_parser, password_required=True)
    encrypt_parser.add_argument(
        "--scheme",
        choices=SCHEMES,
        help="Output format (default: secrets.scheme from config, else legacy)"
    )

    # decrypt command
    decrypt_parser = subparsers.add_parser(
        "decrypt",
        help="Decrypt a secrets file for a specific stage",
        description="""
Decrypt secrets.<stage>.yml.encrypted into secrets.<stage>.yml.

The cipher scheme (legacy or aead) is detected from the encrypted file.
        """
    )
    add_stage_options(decrypt_parser, password_required=True)

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Check the plaintext secrets file exists",
        description="""
Verify secrets.<stage>.yml is present before a deployment step runs.

Exit codes:
  0 - File found
  1 - File missing
        """
    )
    check_parser.add_argument(
        "-s", "--stage",
        required=True,
        help="Stage of the secrets file (e.g. dev, prod)"
    )

    # hook command
    hook_parser = subparsers.add_parser(
        "hook",
        help="Fire a lifecycle event",
        description="""
Run whatever stagecrypt registers for a named lifecycle event.

Registered by default:
  encrypt:encrypt        - encrypt the stage's secrets file
  decrypt:decrypt        - decrypt the stage's secrets file
  before:deploy:cleanup  - preflight check (configurable via hooks.preflight)

encrypt:encrypt and decrypt:decrypt need -p/--password or $STAGECRYPT_PASSWORD.
Firing an event with nothing registered is not an error.
        """
    )
    hook_parser.add_argument(
        "event",
        help="Lifecycle event name, e.g. before:deploy:cleanup"
    )
    add_stage_options(hook_parser, password_required=False)

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Inspect stagecrypt configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    # config show command
    _config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show resolved configuration",
        description="""
Display the configuration file in use and the settings read from it.

Lookup order:
  1. --config
  2. STAGECRYPT_CONFIG
  3. <project-root>/stagecrypt.yml or stagecrypt.yaml
        """
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # If no command provided, show help and exit with usage error code
    if not args.command:
        parser.print_help()
        sys.exit(2)

    # Route to command handlers
    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "encrypt":
            cmd_encrypt(args)
        elif args.command == "decrypt":
            cmd_decrypt(args)
        elif args.command == "check":
            cmd_check(args)
        elif args.command == "hook":
            cmd_hook(args)
        elif args.command == "config":
            if args.config_command == "show":
                cmd_config_show(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
