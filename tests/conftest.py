from pathlib import Path

import pytest

from fakes import FakeBackend, FakeClock
from gatewaylogin.core import GatewayLogin
from gatewaylogin.settings import LoginSettings, TradingMode


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduled():
    """(delay, func) pairs handed to GatewayLogin.schedule_later."""
    return []


@pytest.fixture
def paper_settings():
    return LoginSettings("trader", "s3cret", TradingMode.PAPER, 4002)


@pytest.fixture
def live_settings():
    return LoginSettings("trader", "s3cret", TradingMode.LIVE, 4001)


@pytest.fixture
def make_login(tmp_path, backend, clock, scheduled):
    created = []

    def factory(login_settings):
        login = GatewayLogin(
            login_settings,
            backend=backend,
            log_dir=str(tmp_path / "logs"),
            restart_marker=tmp_path / "restart",
            clock=clock,
            scheduler=lambda delay, func, *args: scheduled.append((delay, func)),
        )
        created.append(login)
        return login

    yield factory
    for login in created:
        login.audit.close()


@pytest.fixture
def login(make_login, paper_settings):
    return make_login(paper_settings)


@pytest.fixture
def read_log(login):
    def reader():
        return Path(login.audit.path).read_text()
    return reader
