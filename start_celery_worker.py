#!/usr/bin/env python3
"""
Celery 워커 시작 스크립트
환경변수를 로드한 후 Celery 워커를 시작합니다.
"""
import os
from dotenv import load_dotenv

# .env 파일 로드
load_dotenv('.env')

# 환경변수 확인 (토큰 값은 출력하지 않음)
print("🔧 환경변수 로드 완료")
print(f"SEMAPHORE_URL: {os.getenv('SEMAPHORE_URL')}")
print(f"SEMAPHORE_TOKEN: {'설정됨' if os.getenv('SEMAPHORE_TOKEN') else '없음'}")
print(f"REDIS_HOST: {os.getenv('REDIS_HOST', 'localhost')}")

# Celery 워커 시작
if __name__ == '__main__':
    from ha_platform.celery_app import celery_app

    concurrency = os.getenv('CELERY_CONCURRENCY', '4')
    print("🚀 Celery 워커 시작...")
    celery_app.worker_main(['worker', '--loglevel=info', f'--concurrency={concurrency}'])
