import pytest
from loguru import logger


@pytest.fixture
def caplog(caplog):
    """Routes loguru records into pytest's caplog."""
    handler_id = logger.add(caplog.handler, format="{message}", level=0)
    yield caplog
    logger.remove(handler_id)
