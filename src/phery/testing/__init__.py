"""Test utilities for phery applications.

Provides an in-process test client and command assertions::

    from phery.testing import TestClient, assert_command
"""

from phery.testing.assertions import (
    assert_command,
    assert_commands,
    assert_no_commands,
    commands,
)
from phery.testing.client import TestClient, encode_fields

__all__ = [
    "TestClient",
    "assert_command",
    "assert_commands",
    "assert_no_commands",
    "commands",
    "encode_fields",
]
