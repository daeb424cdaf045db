"""유틸리티 모듈 패키지.

Watchdog 상태머신 및 헬퍼 기능을 제공합니다.
"""
from .watchdog import DriveState, StopReason, Watchdog

__all__ = [
    "DriveState",
    "StopReason",
    "Watchdog",
]
