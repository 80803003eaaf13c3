"""Shared fixtures for the RPC agent test suite."""

import os
import sys

import pytest
import structlog

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rpc_daemon.plugins.puppetd import puppetd_agent
from rpc_daemon.plugins.puppetd.config import PuppetdConfig


@pytest.fixture(autouse=True)
def reset_state(monkeypatch):
    """Isolate tests from RPC_* environment and module-level state."""
    for key in list(os.environ):
        if key.startswith("RPC_"):
            monkeypatch.delenv(key, raising=False)
    puppetd_agent.set_config(None)
    structlog.contextvars.clear_contextvars()
    yield
    puppetd_agent.set_config(None)
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def puppet_state(tmp_path):
    """Directory standing in for /var/lib/puppet/state."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def puppetd_config(puppet_state):
    """Active puppetd configuration pointing at the temporary state dir."""
    cfg = PuppetdConfig(
        lockfile=puppet_state / "puppetdlock",
        statefile=puppet_state / "state.yaml",
        puppetd="/usr/sbin/puppetd",
    )
    puppetd_agent.set_config(cfg)
    return cfg
