"""
Pytest configuration and shared fixtures for MODINJECT tests.

This module provides:
- Registry and operation-scope isolation between tests
- A clean global metrics collector
"""

import pytest

from modinject.di import key_registry
from modinject.di.scopes import _operation_scope
from modinject.observability import clear_module_context, clear_operation_id
from modinject.observability.metrics import get_metrics_collector

# ============================================================================
# ISOLATION FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_registry():
    """Start every test with an empty key registry and no operation in flight."""
    key_registry.reset()
    _operation_scope.set(None)
    clear_operation_id()
    clear_module_context()
    yield
    _operation_scope.set(None)
    clear_operation_id()
    key_registry.reset()


@pytest.fixture
def metrics_collector():
    """Global metrics collector, emptied before and after the test."""
    collector = get_metrics_collector()
    collector.reset()
    yield collector
    collector.reset()
