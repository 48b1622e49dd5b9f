"""
프로비저닝 예외 정의
"""
from typing import Any, Dict, Optional


class ProvisioningError(Exception):
    """프로비저닝 기본 예외"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {'type': type(self).__name__, 'message': self.message}


class ValidationError(ProvisioningError):
    """입력 검증 실패 (사용자가 수정 가능)"""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.details = details or {}


class InvalidIpConfigError(ValidationError):
    """ipconfig0 문자열 파싱 실패"""


class ConflictError(ProvisioningError):
    """고유 키 중복"""
    status_code = 409


class NotFoundError(ProvisioningError):
    """참조 레코드 없음"""
    status_code = 404


class StorageError(ProvisioningError):
    """플레이북 저장 실패"""
    status_code = 500


class JobServiceError(ProvisioningError):
    """Semaphore 연동 오류 기본 클래스"""
    status_code = 502


class UpstreamError(JobServiceError):
    """Semaphore 가 2xx 이외의 상태를 반환"""

    def __init__(self, status: int, body: Any):
        super().__init__(f"Semaphore returned HTTP {status}")
        self.status = status
        self.body = body

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['status'] = self.status
        data['body'] = self.body
        return data


class ProtocolError(JobServiceError):
    """Semaphore 응답에 필요한 필드가 없음"""


class TransportError(JobServiceError):
    """Semaphore 에 도달하지 못함 (연결 거부, 타임아웃)"""
    status_code = 504
