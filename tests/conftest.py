import pytest
from hiersim.config import SimConfig


@pytest.fixture
def make_config():
    """Builds a SimConfig with small, test-friendly defaults."""
    def _make(**overrides):
        params = dict(block_size=4, memory_latency=100)
        params.update(overrides)
        return SimConfig(**params)
    return _make
