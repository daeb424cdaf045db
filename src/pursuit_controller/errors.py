#!/usr/bin/env python3
"""
제어 주기 오류 분류

제어 주기를 중단시키는 오류 종류를 열거형으로 정의합니다.
예외를 던지는 대신 ControlResult에 담아 반환하므로, 호출자는 주기 단위
실패와 안전 정지(COLLISION_IMMINENT)를 구분해서 처리할 수 있습니다.

오류 종류:
    EMPTY_PLAN: 저장된 경로가 비어 있음
    FRAME_TRANSFORM_ERROR: 로봇 위치를 경로/맵 좌표계로 변환 불가
    EMPTY_TRANSFORMED_PLAN: 필터링 후 남은 경로 점이 없음
    COLLISION_IMMINENT: 전방 주시점까지 직선 경로에 충돌 예측 (안전 정지)
    NOT_ACTIVE: 제어기가 활성화되지 않음

Author: HYCU Autonomous Driving Team
"""
from enum import Enum


class ControlError(Enum):
    """주기 치명 오류 열거형."""
    EMPTY_PLAN = 1
    FRAME_TRANSFORM_ERROR = 2
    EMPTY_TRANSFORMED_PLAN = 3
    COLLISION_IMMINENT = 4
    NOT_ACTIVE = 5

    @property
    def is_safety_abort(self) -> bool:
        return self is ControlError.COLLISION_IMMINENT


class TransformError(Exception):
    """좌표 변환 서비스가 허용 시간 내에 변환하지 못함."""
