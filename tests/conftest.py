"""Root conftest - shared fixtures."""

import pytest

from tests.fakes import FUNDING, TARGET, FakeLedger, make_monitor


@pytest.fixture
def ledger():
    """Target below the 0.1 threshold, funding wallet able to pay a 0.2 top-up."""
    return FakeLedger({TARGET: "0.05", FUNDING: "0.5"})


@pytest.fixture
def monitor(ledger):
    return make_monitor(ledger)
