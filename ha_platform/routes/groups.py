"""
로드밸런서 그룹 엔드포인트
"""
from flask import Blueprint, jsonify

from ha_platform.routes.route_utils import get_json_body, get_provisioning_service

bp = Blueprint('groups', __name__)


@bp.route('/api/groups', methods=['GET'])
def list_groups():
    return jsonify(get_provisioning_service().list_groups())


@bp.route('/api/groups', methods=['POST'])
@bp.route('/api/groups/<int:server_id>', methods=['POST'])
def add_group(server_id=None):
    """그룹 생성 (경로의 server_id 가 있으면 본문보다 우선)"""
    data = get_json_body()
    if server_id is not None and isinstance(data, dict):
        data = dict(data, server_id=server_id)
    return jsonify(get_provisioning_service().add_group(data)), 201
