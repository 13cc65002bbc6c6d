import logging

import pytest


@pytest.fixture(autouse=True)
def reset_gitdump_logger():
    """setup_logging 会给 gitdump logger 装上指向当前stderr的handler，测试结束后清理掉"""
    yield
    logger = logging.getLogger("gitdump")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
