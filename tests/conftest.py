import pytest

from roadrelay.config import get_relay_settings

from tests.fakes import FakeConnector


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_relay_settings.cache_clear()
    yield
    get_relay_settings.cache_clear()
