import os


def _env_bool(name, default='false'):
    return os.environ.get(name, default).lower() == 'true'


def _env_list(name, default=''):
    return [item.strip() for item in os.environ.get(name, default).split(',') if item.strip()]


class Config:
    """기본 설정"""
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = _env_bool('DEBUG')
    TESTING = False

    # 프로젝트 루트 디렉토리 (ha_platform/config 의 상위의 상위)
    basedir = os.path.abspath(os.path.dirname(__file__))
    project_root = os.path.dirname(os.path.dirname(basedir))
    instance_dir = os.path.join(project_root, "instance")

    # SQLAlchemy 설정 (운영은 DATABASE_URL 로 MySQL 지정)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', f'sqlite:///{os.path.join(instance_dir, "ha_platform.db")}'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS 설정
    HOST_IP = os.environ.get('HOST_IP', '192.168.0.43')
    CORS_ALLOWED_ORIGINS = _env_list(
        'CORS_ALLOWED_ORIGINS', f'http://localhost:5173,http://{HOST_IP}:5173'
    )

    # Semaphore (외부 작업 실행 서비스) 설정
    SEMAPHORE_URL = os.environ.get('SEMAPHORE_URL', 'http://localhost:3000/api')
    SEMAPHORE_TOKEN = os.environ.get('SEMAPHORE_TOKEN', '')
    SEMAPHORE_PROJECT_ID = int(os.environ.get('SEMAPHORE_PROJECT_ID', '1'))
    SEMAPHORE_TIMEOUT = float(os.environ.get('SEMAPHORE_TIMEOUT', '10'))

    # 작업 폴링 설정 (JOB_POLL_TIMEOUT=0 이면 제한 없음)
    JOB_POLL_INTERVAL = float(os.environ.get('JOB_POLL_INTERVAL', '3'))
    JOB_POLL_TIMEOUT = float(os.environ.get('JOB_POLL_TIMEOUT', '1800'))

    # 생성된 플레이북 저장 위치
    PLAYBOOK_DIR = os.environ.get(
        'PLAYBOOK_DIR', os.path.join(project_root, 'generated', 'playbooks')
    )
    PLAYBOOK_BASE_URL = os.environ.get('PLAYBOOK_BASE_URL', f'http://{HOST_IP}:3001/playbooks')

    # Proxmox 설정 (proxmox_creds 테이블이 비어 있을 때 사용)
    PROXMOX_ENDPOINT = os.environ.get('PROXMOX_ENDPOINT', 'localhost')
    PROXMOX_API_USER = os.environ.get('PROXMOX_API_USER', 'root@pam')
    PROXMOX_API_TOKEN_ID = os.environ.get('PROXMOX_API_TOKEN_ID', 'automation')
    PROXMOX_NODE = os.environ.get('PROXMOX_NODE', 'pve')
    PROXMOX_VM_TEMPLATE = os.environ.get('PROXMOX_VM_TEMPLATE', 'ubuntu-mysql-template')
    PROXMOX_REPLICA_TEMPLATE = os.environ.get('PROXMOX_REPLICA_TEMPLATE', 'ubuntu-mysql-replica-template')

    # 복제 구성용 고정 운영 계정
    OPS_SSH_USER = os.environ.get('OPS_SSH_USER', 'ansible')
    OPS_SSH_PASSWORD = os.environ.get('OPS_SSH_PASSWORD', 'ansible')
    MYSQL_REPLICATION_USER = os.environ.get('MYSQL_REPLICATION_USER', 'repl')
    MYSQL_REPLICATION_PASSWORD = os.environ.get('MYSQL_REPLICATION_PASSWORD', 'repl-password')
    MYSQL_REPLICATION_CONF = os.environ.get(
        'MYSQL_REPLICATION_CONF', '/etc/mysql/mysql.conf.d/replication.cnf'
    )

    # Redis / Celery 설정
    REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
    REDIS_PORT = int(os.environ.get('REDIS_PORT', '6379'))
    REDIS_DB = int(os.environ.get('REDIS_DB', '0'))
    REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD')

    # 로깅 설정
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE', os.path.join(project_root, 'logs', 'ha_platform.log'))
    LOG_MAX_BYTES = int(os.environ.get('LOG_MAX_BYTES', '10485760'))  # 10MB
    LOG_BACKUP_COUNT = int(os.environ.get('LOG_BACKUP_COUNT', '5'))

    @classmethod
    def get_broker_url(cls):
        """Celery 브로커 URL 반환 (비밀번호 지원)"""
        if cls.REDIS_PASSWORD:
            return f"redis://:{cls.REDIS_PASSWORD}@{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}"
        return f"redis://{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}"


class DevelopmentConfig(Config):
    """개발 환경 설정"""
    DEBUG = True


class ProductionConfig(Config):
    """운영 환경 설정"""
    DEBUG = False


class TestingConfig(Config):
    """테스트 환경 설정"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    CORS_ALLOWED_ORIGINS = ['http://localhost:5173']
    SEMAPHORE_URL = 'http://semaphore.test/api'
    SEMAPHORE_TOKEN = 'test-token'
    JOB_POLL_INTERVAL = 0
    JOB_POLL_TIMEOUT = 5
    PLAYBOOK_BASE_URL = 'http://files.test/playbooks'


# 환경별 설정 매핑
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
