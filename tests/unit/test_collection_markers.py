from __future__ import annotations

import pytest

from tests.integration import test_sql_backends_integration as integration


def test_unit_tests_do_not_require_postgres(request: pytest.FixtureRequest) -> None:
    assert request.node.get_closest_marker("requires_postgres") is None


def test_integration_module_is_gated_on_postgres() -> None:
    assert integration.pytestmark.name == "requires_postgres"
