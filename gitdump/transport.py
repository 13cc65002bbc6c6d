#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

import logging
from collections import namedtuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import USER_AGENT

# 忽略SSL证书验证（针对自签证书场景）
requests.packages.urllib3.disable_warnings()

logger = logging.getLogger(__name__)

Success = namedtuple("Success", ["url", "data"])
NotFound = namedtuple("NotFound", ["url"])
TransportFailure = namedtuple("TransportFailure", ["url", "reason"])


def is_html(response):
    """很多服务器对不存在的文件返回200的HTML错误页"""
    return "text/html" in response.headers.get("Content-Type", "")


class Fetcher:
    """下载单个文件，把HTTP结果转换成 Success / NotFound / TransportFailure"""

    def __init__(self, user_agent=USER_AGENT, timeout=10, retries=3, reject_html=True):
        self.timeout = timeout
        self.reject_html = reject_html
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.session.verify = False

        retry_strategy = Retry(
            total=retries,
            status_forcelist=[429, 500, 502, 503, 504],
            backoff_factor=1,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def fetch(self, url):
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            return TransportFailure(url, str(e))

        if response.status_code == 200:
            if self.reject_html and is_html(response):
                logger.debug("%s 返回了HTML页面，按不存在处理", url)
                return NotFound(url)
            return Success(url, response.content)
        if response.status_code == 404:
            return NotFound(url)
        return TransportFailure(url, f"状态码 {response.status_code}")

    def close(self):
        self.session.close()
