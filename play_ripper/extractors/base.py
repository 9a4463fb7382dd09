"""
视频信息提取器基类
"""
from abc import ABC, abstractmethod

from play_ripper.types import MetadataRecord


class BaseExtractor(ABC):
    """视频信息提取器基类"""

    def __init__(self, network_handler):
        self.network = network_handler

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        """检查是否可以处理该 URL"""
        pass

    @abstractmethod
    def extract(self, url: str) -> MetadataRecord:
        """
        提取视频信息

        Returns:
            MetadataRecord: only ``url`` is guaranteed; every other field may be
            missing when the page does not carry it.

        Raises:
            FetchError: the page itself could not be fetched.
        """
        pass
