"""
데이터베이스 모델 패키지
"""
from .server import Server, MASTER_MARKER
from .proxmox_credential import ProxmoxCredential
from .group import Group, LB_ALGORITHMS

__all__ = ['Server', 'MASTER_MARKER', 'ProxmoxCredential', 'Group', 'LB_ALGORITHMS']
