import os
from dotenv import load_dotenv

# .env 파일 로드 (설정 클래스가 import 시점에 환경 변수를 읽으므로 먼저 로드)
load_dotenv('.env')

from celery import Celery
from ha_platform import create_app  # 앱 팩토리 불러오기
from ha_platform.config.config import config


def create_celery_app():
    config_name = os.getenv('FLASK_CONFIG', 'production')
    flask_app = create_app(config_name)  # Flask 앱 생성

    # Redis 브로커 설정 (비밀번호 지원)
    broker_url = config[config_name].get_broker_url()

    # 백엔드 URL 설정 (환경 변수 우선)
    backend_url = os.getenv('CELERY_RESULT_BACKEND', broker_url)

    celery = Celery(
        'ha_platform',
        broker=broker_url,
        backend=backend_url,
        include=['ha_platform.tasks.job_tasks']
    )

    # 폴링 제한 시간보다 조금 길게 잡아 soft limit 으로 루프를 끊는다
    poll_timeout = int(flask_app.config['JOB_POLL_TIMEOUT'] or 3600)

    celery.conf.update(
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        timezone='Asia/Seoul',
        enable_utc=True,
        task_soft_time_limit=poll_timeout + 60,
        task_time_limit=poll_timeout + 120,
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        result_expires=3600,
        broker_connection_retry_on_startup=True,
        # 태스크 추적 활성화
        task_track_started=True,
        task_send_sent_event=True
    )

    # Flask 컨텍스트 자동 주입
    class ContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with flask_app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery


celery_app = create_celery_app()
