"""Shared test fixtures for all test modules."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """
    Keep every test away from the real ~/.config and ~/.cache.

    The CLI loads ~/.config/orgmend/config.yaml and writes its log under
    ~/.cache/orgmend/logs, so both are pointed into the test's tmp_path and
    ORGMEND_* overrides from the developer's shell are cleared.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    for name in (
        "ORGMEND_LOG_LEVEL",
        "ORGMEND_LOG_DONE",
        "ORGMEND_LOG_INTO_DRAWER",
        "ORGMEND_DEADLINE_WARNING_DAYS",
        "ORGMEND_TAG_INHERITANCE",
        "ORGMEND_ARCHIVE_LOCATION",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    structlog.reset_defaults()
