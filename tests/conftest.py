import pytest

from hashistack.util.logger import Logger, DEFAULT_LOG_LEVEL


@pytest.fixture(autouse=True)
def restore_log_level():
    yield
    Logger.LOG_LEVEL = DEFAULT_LOG_LEVEL
    Logger("hashistack")
