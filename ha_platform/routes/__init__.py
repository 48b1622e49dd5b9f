"""
라우트 패키지
"""
from .servers import bp as servers_bp
from .credentials import bp as credentials_bp
from .groups import bp as groups_bp
from .semaphore import bp as semaphore_bp

# 블루프린트를 직접 import하여 ha_platform/__init__.py에서 사용할 수 있도록 함
servers = servers_bp
credentials = credentials_bp
groups = groups_bp
semaphore = semaphore_bp

__all__ = ['servers', 'credentials', 'groups', 'semaphore']
