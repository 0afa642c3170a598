import pytest
from loguru import logger

from plantopo import TopologyRequest


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_request():
    def _make(**overrides) -> TopologyRequest:
        settings = dict(
            cidr_block="10.0.0.0/16",
            az_count=2,
            public_subnet_count=2,
            private_subnet_count=2,
            nat_per_private_subnet=False,
        )
        settings.update(overrides)
        return TopologyRequest(**settings)

    return _make
