"""
Semaphore 프록시 / 작업 실행 엔드포인트
"""
import logging
from flask import Blueprint, jsonify

from ha_platform.routes.route_utils import get_json_body, get_provisioning_service
from ha_platform.services import validation

logger = logging.getLogger(__name__)

bp = Blueprint('semaphore', __name__)


@bp.route('/api/project/1/environment', methods=['POST'])
def create_environment():
    """Semaphore 환경 생성 프록시"""
    return jsonify(get_provisioning_service().create_environment(get_json_body()))


@bp.route('/api/project/1/templates', methods=['POST'])
def run_template():
    """템플릿 생성 → 작업 시작 → 종료까지 폴링 (요청 스레드에서 대기)

    Semaphore 실패도 200 으로 돌려주며, 호출자는 state / final_status 로 판단한다.
    """
    result = get_provisioning_service().submit_and_run(get_json_body())
    return jsonify(result)


@bp.route('/api/project/1/templates/async', methods=['POST'])
def run_template_async():
    """같은 작업을 Celery 워커에서 실행"""
    # 지연 임포트로 순환 참조 방지
    from ha_platform.tasks.job_tasks import run_job_async

    spec = validation.validate_template_spec(get_json_body())
    task = run_job_async.delay(spec)

    logger.info(f"🚀 비동기 작업 실행 요청: {spec['name']} (Task ID: {task.id})")
    return jsonify({
        'success': True,
        'task_id': task.id,
        'message': f"{spec['name']} 작업이 시작되었습니다.",
        'status': 'queued'
    }), 202


@bp.route('/api/tasks/<task_id>/status', methods=['GET'])
def get_task_status(task_id):
    """Celery 작업 상태 조회"""
    from ha_platform.celery_app import celery_app

    task = celery_app.AsyncResult(task_id)

    if task.state == 'PENDING':
        response = {
            'status': 'pending',
            'message': '작업 대기 중...',
            'polls': 0
        }
    elif task.state in ('STARTED', 'PROGRESS'):
        info = task.info if isinstance(task.info, dict) else {}
        response = {
            'status': 'running',
            'message': f"Semaphore 상태: {info.get('status') or 'unknown'}",
            'polls': info.get('polls', 0)
        }
    elif task.state == 'SUCCESS':
        result = task.result or {}
        response = {
            'status': 'completed',
            'message': '작업 완료',
            'polls': result.get('polls', 0),
            'result': result
        }
    else:  # FAILURE / REVOKED
        response = {
            'status': 'failed',
            'message': '작업 실패',
            'error': type(task.info).__name__ if isinstance(task.info, Exception) else str(task.info)
        }

    response['task_id'] = task_id
    return jsonify(response)
