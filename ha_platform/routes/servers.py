"""
서버 / replica 엔드포인트
"""
from flask import Blueprint, jsonify

from ha_platform.routes.route_utils import get_json_body, get_provisioning_service
from ha_platform.services.provisioning_service import DEFAULT_PROVIDER

bp = Blueprint('servers', __name__)


def _created_response(result):
    body = dict(result['server'])
    body['playbook'] = result['playbook']
    if 'replication' in result:
        body['replication'] = result['replication']
    return jsonify(body), 201


@bp.route('/api/servers', methods=['GET'])
def list_servers():
    """서버 목록 조회 (최신순)"""
    return jsonify(get_provisioning_service().list_servers())


@bp.route('/api/servers', methods=['POST'])
def create_server():
    """서버 레코드 생성 + 플레이북 생성"""
    result = get_provisioning_service().create_server(get_json_body())
    return _created_response(result)


@bp.route('/api/replica/<int:server_id>', methods=['POST'])
@bp.route('/api/servers/<int:server_id>/replica', methods=['POST'])
def create_replica(server_id):
    """replica 레코드 생성 + 복제 플레이북 생성"""
    result = get_provisioning_service().create_replica(server_id, get_json_body())
    return _created_response(result)


@bp.route('/api/servers/<int:server_id>/replica/proxmox', methods=['POST'])
def create_proxmox_replica(server_id):
    """Proxmox replica 생성 (provider 미지정 시 proxmox)"""
    data = get_json_body()
    if isinstance(data, dict) and not data.get('provider'):
        data = dict(data, provider=DEFAULT_PROVIDER)
    result = get_provisioning_service().create_replica(server_id, data)
    return _created_response(result)


@bp.route('/api/servers/<int:server_id>', methods=['PATCH'])
def update_server(server_id):
    """status / ip 갱신"""
    return jsonify(get_provisioning_service().update_server(server_id, get_json_body()))
