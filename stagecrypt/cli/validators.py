"""Input validation for CLI arguments."""
import os
import sys

FORBIDDEN_STAGE_CHARS = {"/", "\\", "\x00"} | {sep for sep in (os.sep, os.altsep) if sep}
RESERVED_STAGES = {".", ".."}


def validate_stage(stage: str) -> None:
    """
    Validate a stage name is usable as a file name segment.

    Stages end up in ``secrets.<stage>.yml``, so anything that would move the
    file into another directory is rejected. Dots are fine (``prod.v2``).

    Args:
        stage: Stage name to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not stage:
        print("Error: Stage cannot be empty", file=sys.stderr)
        sys.exit(2)

    if stage in RESERVED_STAGES or FORBIDDEN_STAGE_CHARS.intersection(stage):
        print(f"Error: Invalid stage {stage!r}", file=sys.stderr)
        print("\nNot allowed: path separators (/ or \\), NUL bytes, '.' or '..' on their own", file=sys.stderr)
        print("\nExamples of valid stages:", file=sys.stderr)
        print("  ✓ prod", file=sys.stderr)
        print("  ✓ dev-eu_1", file=sys.stderr)
        print("  ✓ prod.v2", file=sys.stderr)
        print("\nExamples of invalid stages:", file=sys.stderr)
        print("  ✗ ../prod (contains path separators)", file=sys.stderr)
        print("  ✗ .. (parent directory)", file=sys.stderr)
        sys.exit(2)


def validate_password(password: str) -> None:
    """
    Validate a password was supplied.

    Raises:
        SystemExit with code 2 if the password is missing or empty
    """
    if not password:
        print("Error: Password cannot be empty", file=sys.stderr)
        print("\nPass it with -p/--password or set STAGECRYPT_PASSWORD.", file=sys.stderr)
        sys.exit(2)
