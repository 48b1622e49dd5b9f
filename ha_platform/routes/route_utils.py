"""
라우트 공통 유틸리티 함수들
"""
from typing import Any

from flask import current_app, request

from ha_platform.errors import ValidationError
from ha_platform.services import ProvisioningService


def get_provisioning_service() -> ProvisioningService:
    """현재 앱 설정 기반 오케스트레이터 생성 (요청마다 새 Semaphore 세션)"""
    return ProvisioningService(current_app.config)


def get_json_body() -> Any:
    """JSON 요청 본문 - 파싱 실패 시 ValidationError"""
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must be valid JSON')
    return data
