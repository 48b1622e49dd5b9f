"""
HA Platform 실행 파일
"""
import os
from dotenv import load_dotenv

# .env 파일 로드 (설정 클래스보다 먼저)
load_dotenv()

from ha_platform import create_app, db

config_name = os.environ.get('FLASK_CONFIG', 'development')
app = create_app(config_name)


if __name__ == '__main__':
    # 데이터베이스 테이블 생성 (마이그레이션 도구는 사용하지 않음)
    with app.app_context():
        from ha_platform import models  # noqa: F401  모델 등록
        db.create_all()

    port = int(os.environ.get('PORT', 3001))

    print("🚀 HA Platform 시작 중...")
    print(f"📱 API: http://0.0.0.0:{port}/api")

    # 요청마다 별도 스레드 (작업 폴링이 다른 요청을 막지 않도록)
    app.run(
        debug=app.config['DEBUG'],
        host='0.0.0.0',
        port=port,
        threaded=True
    )
