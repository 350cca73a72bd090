import pytest
from shared.networks import get_network_config
from shared.price_feed import clear_cache


@pytest.fixture(autouse=True)
def _fresh_price_cache():
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def ethereum():
    return get_network_config("ethereum")


@pytest.fixture
def solana():
    return get_network_config("solana")


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'scans.db'}"
