"""
YTSubs 설정 패키지
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
