import logging

from writeedge.core.logging_config import get_logger


def test_named_loggers_live_under_the_package_logger():
    logger = get_logger("main")

    assert logger.name == "writeedge.main"
    assert logger.parent is logging.getLogger("writeedge")
    assert "app" not in logging.root.manager.loggerDict or not logging.getLogger("app").handlers
