"""
HA Platform Flask Application Factory
"""
from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
import logging
import os
from logging.handlers import RotatingFileHandler

# 전역 객체들
db = SQLAlchemy()

logger = logging.getLogger(__name__)


def create_app(config_name='development', config_overrides=None):
    """Flask 애플리케이션 팩토리"""
    app = Flask(__name__)

    # 설정 로드
    from ha_platform.config.config import config
    app.config.from_object(config[config_name])
    if config_overrides:
        app.config.update(config_overrides)

    # 데이터베이스 초기화
    db.init_app(app)

    # 로깅 설정
    setup_logging(app)

    # 블루프린트 등록
    register_blueprints(app)

    # 에러 핸들러 등록
    register_error_handlers(app)

    # 요청 로그 / CORS / 보안 헤더
    setup_request_logging(app)
    setup_cors(app)
    setup_security_headers(app)

    return app


def setup_logging(app):
    """로깅 설정"""
    formatter = logging.Formatter('%(asctime)s %(levelname)s: %(message)s')

    # 콘솔 핸들러 설정 (항상 활성화)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.INFO)

    handlers = [console_handler]

    if not app.debug and not app.testing:
        # 로그 디렉토리 생성
        log_file = app.config['LOG_FILE']
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        # 파일 핸들러 설정
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=app.config['LOG_MAX_BYTES'],
            backupCount=app.config['LOG_BACKUP_COUNT']
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)

    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    # app.logger 는 'ha_platform' 로거이므로 서비스 모듈 로거도 여기로 전파됨
    for handler in list(app.logger.handlers):
        app.logger.removeHandler(handler)
    for handler in handlers:
        app.logger.addHandler(handler)
    app.logger.setLevel(level)
    app.logger.info('HA Platform startup')


def register_blueprints(app):
    """블루프린트 등록"""
    from ha_platform.routes import servers, credentials, groups, semaphore

    app.register_blueprint(servers)
    app.register_blueprint(credentials)
    app.register_blueprint(groups)
    app.register_blueprint(semaphore)


def register_error_handlers(app):
    """에러 핸들러 등록"""
    from ha_platform.errors import ProvisioningError, ValidationError, StorageError
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(ValidationError)
    def validation_error(error):
        body = {'error': error.message}
        if error.details:
            body['details'] = error.details
        return jsonify(body), error.status_code

    @app.errorhandler(StorageError)
    def storage_error(error):
        db.session.rollback()
        app.logger.error(f"❌ 플레이북 저장 실패: {error.message}")
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(ProvisioningError)
    def provisioning_error(error):
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(Exception)
    def unhandled_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'error': error.description}), error.code
        db.session.rollback()
        app.logger.exception(f"💥 처리되지 않은 오류: {type(error).__name__}")
        return jsonify({'error': 'Internal server error'}), 500


def setup_request_logging(app):
    """요청 로그"""
    @app.before_request
    def log_request():
        app.logger.info(
            f"[REQ] {request.method} {request.path} Origin={request.headers.get('Origin', '(none)')}"
        )


def setup_cors(app):
    """/api 경로 CORS 설정 (허용 목록 기반)"""
    allowed_origins = set(app.config.get('CORS_ALLOWED_ORIGINS', []))

    @app.before_request
    def cors_preflight():
        if request.method != 'OPTIONS' or not request.path.startswith('/api/'):
            return None
        origin = request.headers.get('Origin')
        if origin and origin not in allowed_origins:
            return jsonify({'error': f'Not allowed by CORS: {origin}'}), 403
        return app.response_class(status=204)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get('Origin')
        if request.path.startswith('/api/') and origin in allowed_origins:
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Allow-Methods'] = 'GET,POST,PUT,PATCH,DELETE,OPTIONS'
            response.headers['Access-Control-Allow-Headers'] = 'Content-Type,Authorization'
            response.headers['Vary'] = 'Origin'
        return response


def setup_security_headers(app):
    """보안 헤더 설정"""
    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        return response
