"""Tests for resilience module."""

import pytest


def test_resilience_imports():
    """Test that resilience module can be imported."""
    from wrapcycle.resilience import (
        OutcomeClass,
        Operation,
        RetryExecutor,
        RetryPolicy,
        classify,
    )

    assert classify is not None
    assert RetryExecutor is not None
    assert OutcomeClass.FATAL.value == "FATAL"
