"""集計・フィルタリング・テキスト出力モジュール。"""

from .aggregator import Aggregator
from .selector import RegionSelector
from .text_reporter import TextReporter

__all__ = ["Aggregator", "RegionSelector", "TextReporter"]
