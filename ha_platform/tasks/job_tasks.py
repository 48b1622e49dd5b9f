"""
Semaphore 작업 실행 Celery 작업
"""
import logging

from celery.exceptions import SoftTimeLimitExceeded
from flask import current_app

from ha_platform.celery_app import celery_app
from ha_platform.services import ProvisioningService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def run_job_async(self, template_spec):
    """템플릿 생성 → 작업 시작 → 종료까지 폴링 (워커에서 실행)"""
    task_id = self.request.id
    logger.info(f"🚀 비동기 작업 실행 시작: {template_spec.get('name')} (Task ID: {task_id})")

    self.update_state(state='PROGRESS', meta={'polls': 0, 'status': 'submitting'})

    def on_poll(polls, status):
        self.update_state(state='PROGRESS', meta={'polls': polls, 'status': status.get('status')})

    try:
        result = ProvisioningService(current_app.config).submit_and_run(template_spec, on_poll=on_poll)
    except SoftTimeLimitExceeded:
        logger.error(f"⏰ 비동기 작업 시간 초과로 폴링 중단: {template_spec.get('name')} (Task ID: {task_id})")
        raise

    logger.info(f"🏁 비동기 작업 종료: {template_spec.get('name')} → {result['state']}")
    return result
