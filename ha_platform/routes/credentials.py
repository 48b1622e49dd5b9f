"""
Proxmox 자격 증명 엔드포인트
"""
from flask import Blueprint, jsonify

from ha_platform.routes.route_utils import get_json_body, get_provisioning_service

bp = Blueprint('credentials', __name__)


@bp.route('/api/proxmox_creds', methods=['GET'])
def list_credentials():
    """자격 증명 목록 (api_token 제외)"""
    return jsonify(get_provisioning_service().list_credentials())


@bp.route('/api/proxmox_creds', methods=['POST'])
def add_credential():
    """자격 증명 등록"""
    return jsonify(get_provisioning_service().add_credential(get_json_body())), 201
