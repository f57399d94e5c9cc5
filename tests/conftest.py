"""
Pytest configuration and fixtures.

This module configures pytest behavior for different test types:
- Integration tests: Skipped unless both test orgs are configured, and fail when
  sf_data_transfer logs a warning during the test
- Unit tests: Run against in-memory fake orgs (see fakes.py)
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import pytest
from typing_extensions import override
from fakes import FakeOrg, account_schema, contact_schema

from sf_data_transfer.orchestrator import TransferOrchestrator

if TYPE_CHECKING:
    from collections.abc import Generator

INTEGRATION_ENV_VARS = ("SF_TEST_SOURCE_ORG", "SF_TEST_TARGET_ORG")

# WARNING records logged by sf_data_transfer, keyed by the test that produced them
_transfer_warnings: dict[str, list[logging.LogRecord]] = {}


class TransferWarningCollector(logging.Handler):
    """Collects WARNING records the transfer package logs while a real-org test runs.

    Against the two test orgs a warning means a query returned only its first
    page and part of the data was silently left behind, so it fails the test.
    """

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__(level=logging.WARNING)
        self.test_nodeid = test_nodeid

    @override
    def emit(self, record: logging.LogRecord) -> None:
        _transfer_warnings.setdefault(self.test_nodeid, []).append(record)


@pytest.fixture(autouse=True)
def check_integration_test_env_vars(request: pytest.FixtureRequest) -> None:
    """Skip integration tests when the test orgs are not configured."""
    if request.node.get_closest_marker("integration") is None:
        return
    missing = [name for name in INTEGRATION_ENV_VARS if not os.environ.get(name)]
    if missing:
        pytest.skip(f"Integration test requires environment variables: {', '.join(missing)}")


@pytest.fixture(autouse=True)
def collect_transfer_warnings(request: pytest.FixtureRequest) -> Generator[None]:
    """Attach a TransferWarningCollector to the package logger for integration tests."""
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    collector = TransferWarningCollector(request.node.nodeid)
    package_logger = logging.getLogger("sf_data_transfer")
    package_logger.addHandler(collector)
    try:
        yield
    finally:
        package_logger.removeHandler(collector)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None]:  # type: ignore[misc]
    """Turn a passing real-org transfer test into a failure when the package logged warnings."""
    outcome = yield
    report = outcome.get_result()
    if call.when != "call":
        return

    records = _transfer_warnings.pop(item.nodeid, [])
    if records and report.outcome == "passed":
        lines = [f"  - {r.name}:{r.lineno} {r.levelname}: {r.getMessage()}" for r in records]
        report.outcome = "failed"
        report.longrepr = f"Transfer logged {len(records)} warning(s) against the test orgs:\n" + "\n".join(lines)


@pytest.fixture
def source_org() -> FakeOrg:
    """Source org with three accounts and five contacts (two without an account)."""
    accounts = [
        {"Id": f"001S{i}", "Name": f"Account {i}", "Industry": "Energy", "External_Id__c": f"EXT-{i}", "Score__c": 9.5}
        for i in range(1, 4)
    ]
    contacts = [
        {
            "Id": f"003S{i}",
            "LastName": f"Contact {i}",
            "Email": f"c{i}@example.com",
            "Birthdate": f"1990-01-0{i}",
            "AccountId": f"001S{i}" if i <= 3 else None,
            "CreatedDate": "2024-01-01T00:00:00.000+0000",
        }
        for i in range(1, 6)
    ]
    return FakeOrg(
        "S",
        schemas={"Account": account_schema(), "Contact": contact_schema()},
        records={"Account": accounts, "Contact": contacts},
    )


@pytest.fixture
def target_org() -> FakeOrg:
    """Empty target org with the same schemas as the source."""
    return FakeOrg("T", schemas={"Account": account_schema(), "Contact": contact_schema()})


@pytest.fixture
def orchestrator(source_org: FakeOrg, target_org: FakeOrg) -> TransferOrchestrator:
    """Orchestrator whose connections resolve to the fake orgs."""
    from sf_data_transfer.models import Connection

    clients = {"https://source.my.salesforce.com": source_org, "https://target.my.salesforce.com": target_org}
    orchestrator = TransferOrchestrator(client_factory=lambda connection: clients[connection.instance_url])
    orchestrator.initialize(
        Connection("https://source.my.salesforce.com", "source-token", alias="source"),
        Connection("https://target.my.salesforce.com", "target-token", alias="target"),
    )
    return orchestrator
