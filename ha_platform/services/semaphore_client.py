"""
Semaphore (Ansible 작업 실행 서비스) API 클라이언트
"""
import logging
from typing import Any, Dict, Mapping, Optional

import requests

from ha_platform.errors import ProtocolError, TransportError, UpstreamError

logger = logging.getLogger(__name__)


class SemaphoreClient:
    """Semaphore REST API 클라이언트

    요청마다 한 번만 호출하고 재시도하지 않는다. 재시도 정책은 호출자가 정한다.
    """

    def __init__(self, base_url: str, token: str, project_id: int = 1,
                 timeout: float = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.project_id = project_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        })

    @classmethod
    def from_config(cls, config: Mapping[str, Any], session: Optional[requests.Session] = None) -> 'SemaphoreClient':
        return cls(
            base_url=config['SEMAPHORE_URL'],
            token=config['SEMAPHORE_TOKEN'],
            project_id=config['SEMAPHORE_PROJECT_ID'],
            timeout=config['SEMAPHORE_TIMEOUT'],
            session=session
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/project/{self.project_id}{path}"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """공통 요청 처리 - 오류 유형별 예외 변환"""
        url = self._url(path)
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Semaphore 연결 실패: {method} {url} ({type(e).__name__})")
            raise TransportError(f"Could not reach Semaphore: {type(e).__name__}") from e

        if not 200 <= response.status_code < 300:
            body = self._body(response)
            logger.error(f"❌ Semaphore 오류 응답: {method} {url} → {response.status_code}")
            raise UpstreamError(response.status_code, body)

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"Semaphore returned a non-JSON response for {method} {path}") from e

    @staticmethod
    def _body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _require_id(result: Any, operation: str) -> Dict[str, Any]:
        if not isinstance(result, dict) or result.get('id') is None:
            raise ProtocolError(f"Semaphore {operation} response has no id")
        return result

    def create_template(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        """작업 템플릿 생성 → {'id': ...}"""
        payload = dict(spec)
        payload.setdefault('project_id', self.project_id)
        result = self._request('POST', '/templates', payload)
        result = self._require_id(result, 'template create')
        logger.info(f"📋 Semaphore 템플릿 생성: {spec.get('name')} (ID: {result['id']})")
        return result

    def start_task(self, template_id: int) -> Dict[str, Any]:
        """템플릿 실행 → {'id': ...}"""
        result = self._request('POST', '/tasks', {'template_id': template_id})
        result = self._require_id(result, 'task start')
        logger.info(f"🚀 Semaphore 작업 시작: template={template_id} task={result['id']}")
        return result

    def get_task_status(self, task_id: int) -> Dict[str, Any]:
        """작업 상태 조회 - 상태 값은 해석하지 않고 그대로 반환"""
        result = self._request('GET', f'/tasks/{task_id}')
        if not isinstance(result, dict):
            raise ProtocolError('Semaphore task status response is not an object')
        return result

    def create_environment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """환경(변수/시크릿) 생성"""
        body = dict(payload)
        body.setdefault('project_id', self.project_id)
        result = self._request('POST', '/environment', body)
        logger.info(f"🔐 Semaphore 환경 생성: {payload.get('name')}")
        return result if isinstance(result, dict) else {'result': result}
