#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

"""控制台日志配置"""

import logging

MARKERS = {
    logging.DEBUG: "[*]",
    logging.INFO: "[+]",
    logging.WARNING: "[-]",
    logging.ERROR: "[ERROR]",
    logging.CRITICAL: "[ERROR]",
}


class MarkerFormatter(logging.Formatter):
    """在每条日志前加上 [+] / [-] / [ERROR] 之类的标记"""

    def format(self, record):
        record.marker = MARKERS.get(record.levelno, "[?]")
        return super().format(record)


def setup_logging(verbose=False):
    logger = logging.getLogger("gitdump")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(MarkerFormatter("%(marker)s %(message)s"))
    logger.addHandler(handler)
    return logger
