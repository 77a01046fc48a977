"""Exit codes for the workflow-builder CLI.

Follows Unix conventions so shell scripts and CI pipelines can tell an
unreadable definition apart from a readable one that fails validation.

Usage:
    Always use named constants instead of raw integers:

    from workflow_builder.exit_codes import EX_INVALID, EX_OK
    sys.exit(EX_INVALID)  # GOOD
    sys.exit(4)  # BAD - unclear meaning

Exit Code Categories:
    0: Success
    2-4: User/input errors (bad flags, unloadable file, invalid workflow)
    12: I/O errors
    70: System/unexpected errors
"""

# Success
EX_OK = 0
"""Successful execution."""

# User errors
EX_USAGE = 2
"""Command-line usage error (bad --var format, unknown template, missing parameters)."""

EX_SCHEMA = 3
"""Workflow definition could not be loaded.

The file is missing, too large, not valid YAML/JSON, or its contents do not
match the workflow definition shape (unknown step type, duplicate step id,
non-positive timeout, etc.).
"""

EX_INVALID = 4
"""Workflow loaded but validation reported errors.

Also returned by ``validate --strict`` when only warnings were reported.
"""

# Runtime errors
EX_IO = 12
"""Output write error (can't create directory, write file, etc.)."""

# System errors
EX_UNKNOWN = 70
"""Unexpected exception not handled by specific error codes.

Indicates a bug in the CLI or an unhandled edge case. When this occurs,
use --verbose to see the full traceback and report the issue.
"""
