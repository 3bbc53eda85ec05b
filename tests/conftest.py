"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set here, before any import that builds settings,
so the app never tries to reach a real Redis during tests.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "100")
os.environ.setdefault("APP_RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("REDIS_ADDRESSES", "127.0.0.1:6379")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest


class FakeTime:
    """Deterministic clock used to test window and expiry logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()
