"""Shared fixtures."""

import os

import pytest

from db_backup.codec.envelope import Envelope


@pytest.fixture
def key() -> bytes:
    return bytes(range(32))


@pytest.fixture
def envelope(key) -> Envelope:
    return Envelope(key)


@pytest.fixture
def other_envelope() -> Envelope:
    return Envelope(os.urandom(32))
