"""
요청 데이터 검증
"""
import re
from typing import Any, Dict, Optional, Tuple

from ha_platform.errors import ValidationError
from ha_platform.models import LB_ALGORITHMS
from ha_platform.utils.ipconfig import extract_host

PROVIDERS = ('proxmox', 'azure')

# 플레이북 파일명으로도 쓰이므로 경로 구분자 불가
VM_NAME_PATTERN = re.compile(r'^[A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?$')
IPCONFIG_PATTERN = re.compile(r'^ip=[^/,\s]+/\d{1,3},\s*gw=[^,\s]+(,.*)?$', re.IGNORECASE)
HOSTNAME_PATTERN = re.compile(r'^[A-Za-z0-9.\-]+$')

# (필드, 필수 여부, 종류, 옵션)
SERVER_FIELDS = [
    ('new_vm_name', True, 'name', {'max': 128}),
    ('vm_memory', True, 'int', {'min': 1}),
    ('vm_cores', True, 'int', {'min': 1}),
    ('ci_user', True, 'str', {'max': 64}),
    ('ci_password', True, 'str', {'min': 6, 'max': 255}),
    ('mysql_password', True, 'str', {'min': 6, 'max': 255}),
    ('ipconfig0', True, 'ipconfig', {'max': 255}),
    ('is_master', True, 'str', {'max': 128}),
    ('provider', True, 'choice', {'choices': PROVIDERS}),
]

REPLICA_FIELDS = [
    field if field[0] != 'provider' else ('provider', False, 'choice', {'choices': PROVIDERS})
    for field in SERVER_FIELDS if field[0] != 'is_master'
]

CREDENTIAL_FIELDS = [
    ('credential_name', True, 'str', {'max': 255}),
    ('api_user', True, 'str', {'max': 255}),
    ('api_token', True, 'str', {'max': 255}),
    ('api_url', True, 'str', {'max': 255}),
    ('api_token_id', True, 'str', {'max': 255}),
]

GROUP_FIELDS = [
    ('server_id', True, 'int', {'min': 1}),
    ('lb_algorithm', True, 'choice', {'choices': LB_ALGORITHMS}),
    ('proxy_ip', True, 'host', {'max': 255}),
]

TEMPLATE_FIELDS = [
    ('name', True, 'name', {'max': 128}),
    ('playbook', False, 'str', {'max': 1024}),
    ('inventory_id', False, 'int', {'min': 1}),
    ('repository_id', False, 'int', {'min': 1}),
    ('environment_id', False, 'int', {'min': 1}),
    ('project_id', False, 'int', {'min': 1}),
    ('app', False, 'str', {'max': 64}),
]


def _check_field(name: str, value: Any, kind: str, opts: Dict[str, Any]) -> Tuple[Any, Optional[str]]:
    """단일 필드 검증 - (정규화된 값, 오류 메시지) 반환"""
    if kind == 'int':
        if isinstance(value, bool):
            return None, f'"{name}" must be a number'
        if isinstance(value, str) and re.fullmatch(r'\s*-?\d+\s*', value):
            value = int(value)
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not isinstance(value, int):
            return None, f'"{name}" must be an integer'
        if 'min' in opts and value < opts['min']:
            return None, f'"{name}" must be greater than or equal to {opts["min"]}'
        return value, None

    if not isinstance(value, str):
        return None, f'"{name}" must be a string'
    if value == '':
        return None, f'"{name}" is not allowed to be empty'
    if 'min' in opts and len(value) < opts['min']:
        return None, f'"{name}" length must be at least {opts["min"]} characters long'
    if 'max' in opts and len(value) > opts['max']:
        return None, f'"{name}" length must be less than or equal to {opts["max"]} characters long'

    if kind == 'name' and not VM_NAME_PATTERN.match(value):
        return None, f'"{name}" may only contain letters, digits, ".", "_" and "-"'
    if kind == 'choice' and value not in opts['choices']:
        return None, f'"{name}" must be one of [{", ".join(opts["choices"])}]'
    if kind == 'host' and not HOSTNAME_PATTERN.match(value.strip()):
        return None, f'"{name}" looks invalid'
    if kind == 'ipconfig':
        if not IPCONFIG_PATTERN.match(value):
            return None, f'"{name}" must look like: ip=192.168.0.39/24,gw=192.168.0.1'
        try:
            extract_host(value)
        except ValidationError as e:
            return None, e.message
    return value.strip() if kind == 'host' else value, None


def validate(data: Any, fields, allow_unknown: bool = False) -> Dict[str, Any]:
    """필드 목록 기준 검증 - 실패 시 ValidationError (첫 번째 오류 메시지 + 전체 상세)"""
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    known = {field[0] for field in fields}
    errors = {}
    cleaned = {}

    for name, required, kind, opts in fields:
        value = data.get(name)
        if value is None:
            if required:
                errors[name] = f'"{name}" is required'
            continue
        value, error = _check_field(name, value, kind, opts)
        if error:
            errors[name] = error
        else:
            cleaned[name] = value

    if not allow_unknown:
        for name in data:
            if name not in known:
                errors[name] = f'"{name}" is not allowed'

    if errors:
        first = next(iter(errors.values()))
        raise ValidationError(first, details=errors)

    return cleaned


def validate_server(data: Any) -> Dict[str, Any]:
    return validate(data, SERVER_FIELDS)


def validate_replica(data: Any) -> Dict[str, Any]:
    return validate(data, REPLICA_FIELDS)


def validate_credential(data: Any) -> Dict[str, Any]:
    return validate(data, CREDENTIAL_FIELDS)


def validate_group(data: Any) -> Dict[str, Any]:
    return validate(data, GROUP_FIELDS)


def validate_template_spec(data: Any) -> Dict[str, Any]:
    """Semaphore 템플릿 생성 요청 검증 (추가 필드는 그대로 전달)"""
    cleaned = validate(data, TEMPLATE_FIELDS, allow_unknown=True)
    passthrough = {
        key: value for key, value in data.items()
        if key not in cleaned and value is not None
    }
    passthrough.update(cleaned)
    return passthrough


def validate_server_update(data: Any) -> Dict[str, Any]:
    """PATCH /api/servers/<id> - status / ip 만 허용"""
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    updates = {}
    status = data.get('status')
    ip = data.get('ip')
    if status:
        if not isinstance(status, str) or len(status) > 20:
            raise ValidationError('"status" must be a string of at most 20 characters')
        updates['status'] = status
    if ip:
        if not isinstance(ip, str) or len(ip) > 45:
            raise ValidationError('"ip" must be a string of at most 45 characters')
        updates['ip'] = ip

    if not updates:
        raise ValidationError('No fields to update')
    return updates
