"""
YTSubs - YouTube 자막 다운로드 백엔드
"""

__version__ = "0.3.0"
