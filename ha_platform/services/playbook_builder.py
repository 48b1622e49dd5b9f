"""
Ansible 플레이북 생성 서비스

서버 생성 요청으로부터 VM 프로비저닝 플레이북과
primary/replica 복제 구성 플레이북을 만든다.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

import yaml

from ha_platform.utils.ipconfig import extract_host, replica_server_id

logger = logging.getLogger(__name__)

PROXMOX_MODULE = 'community.general.proxmox_kvm'
MYSQL_USER_MODULE = 'community.mysql.mysql_user'
MYSQL_REPLICATION_MODULE = 'community.mysql.mysql_replication'

MASTER_GROUP = 'mysql_master'
REPLICA_GROUP = 'mysql_replica'
RESTART_HANDLER = 'Restart mysql'

REPLICATION_PRIVILEGES = '*.*:REPLICATION SLAVE,REPLICATION CLIENT'

REPLICATION_CONF_TEMPLATE = (
    "[mysqld]\n"
    "server-id = {{ server_id }}\n"
    "log_bin = mysql-bin\n"
    "binlog_format = ROW\n"
    "gtid_mode = ON\n"
    "enforce_gtid_consistency = ON\n"
    "relay_log = relay-bin\n"
    "read_only = ON\n"
    "super_read_only = ON\n"
)


@dataclass(frozen=True)
class ReplicationPlan:
    """primary / replica 복제 계획 (저장하지 않음)"""
    master_name: str
    master_host: str
    replica_host: str
    repl_user: str
    repl_password: str
    server_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'master_name': self.master_name,
            'master_host': self.master_host,
            'replica_host': self.replica_host,
            'repl_user': self.repl_user,
            'server_id': self.server_id
        }


def plan_replication(master_name: str, master_ipconfig: str, replica_ipconfig: str,
                     repl_user: str, repl_password: str) -> ReplicationPlan:
    """두 ipconfig0 문자열로부터 복제 계획 생성"""
    master_host = extract_host(master_ipconfig)
    replica_host = extract_host(replica_ipconfig)
    return ReplicationPlan(
        master_name=master_name,
        master_host=master_host,
        replica_host=replica_host,
        repl_user=repl_user,
        repl_password=repl_password,
        server_id=replica_server_id(replica_host)
    )


class _QuotedStr(str):
    pass


class _LiteralStr(str):
    pass


class PlaybookDumper(yaml.SafeDumper):
    """문자열 값을 항상 따옴표로 출력하고 앵커/별칭을 쓰지 않는 Dumper"""

    def ignore_aliases(self, data):
        return True


PlaybookDumper.add_representer(
    _QuotedStr,
    lambda dumper, data: dumper.represent_scalar('tag:yaml.org,2002:str', str(data), style='"')
)
PlaybookDumper.add_representer(
    _LiteralStr,
    lambda dumper, data: dumper.represent_scalar('tag:yaml.org,2002:str', str(data), style='|')
)


def _force_strings(node: Any) -> Any:
    # 키는 그대로, 문자열 값만 명시적 문자열 스타일로 표시
    if isinstance(node, dict):
        return {key: _force_strings(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_force_strings(item) for item in node]
    if isinstance(node, str):
        return _LiteralStr(node) if '\n' in node else _QuotedStr(node)
    return node


def render_playbook(document: List[Dict[str, Any]]) -> str:
    """플레이북 구조를 YAML 텍스트로 직렬화 (동일 입력 → 동일 출력)"""
    return yaml.dump(
        _force_strings(document),
        Dumper=PlaybookDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        explicit_start=True,
        width=4096
    )


class PlaybookBuilder:
    """Ansible 플레이북 생성기"""

    def __init__(self, vm_template: str, replica_template: str,
                 ops_ssh_user: str, ops_ssh_password: str,
                 replication_conf: str):
        self.vm_template = vm_template
        self.replica_template = replica_template
        self.ops_ssh_user = ops_ssh_user
        self.ops_ssh_password = ops_ssh_password
        self.replication_conf = replication_conf

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'PlaybookBuilder':
        return cls(
            vm_template=config['PROXMOX_VM_TEMPLATE'],
            replica_template=config['PROXMOX_REPLICA_TEMPLATE'],
            ops_ssh_user=config['OPS_SSH_USER'],
            ops_ssh_password=config['OPS_SSH_PASSWORD'],
            replication_conf=config['MYSQL_REPLICATION_CONF']
        )

    # ----------------------------------------
    # 공개 API
    # ----------------------------------------

    def build_vm_playbook(self, server: Mapping[str, Any], proxmox: Mapping[str, str]) -> List[Dict[str, Any]]:
        """단일 VM 프로비저닝 플레이북 (clone → cloud-init → start)"""
        logger.info(f"📝 VM 플레이북 생성: {server['new_vm_name']}")
        return [self._provision_play(server, proxmox, self.vm_template)]

    def build_replica_playbook(self, server: Mapping[str, Any], plan: ReplicationPlan,
                               proxmox: Mapping[str, str]) -> List[Dict[str, Any]]:
        """replica VM 프로비저닝 + GTID 복제 구성 플레이북 (4단계)"""
        logger.info(
            f"📝 replica 플레이북 생성: {server['new_vm_name']} "
            f"(primary: {plan.master_name} {plan.master_host} → replica: {plan.replica_host})"
        )
        extra_vars = {
            'master_host': plan.master_host,
            'replica_host': plan.replica_host
        }
        return [
            self._provision_play(server, proxmox, self.replica_template, extra_vars),
            self._inventory_play(plan),
            self._primary_play(plan),
            self._replica_play(server, plan)
        ]

    # ----------------------------------------
    # 플레이(stage) 구성
    # ----------------------------------------

    def _provision_play(self, server: Mapping[str, Any], proxmox: Mapping[str, str],
                        template: str, extra_vars: Dict[str, Any] = None) -> Dict[str, Any]:
        play_vars = {
            'proxmox_api_host': proxmox['api_host'],
            'proxmox_api_user': proxmox['api_user'],
            'proxmox_api_token_id': proxmox['api_token_id'],
            'proxmox_api_token_secret': "{{ lookup('env', 'PROXMOX_API_TOKEN_SECRET') }}",
            'proxmox_node': proxmox['node'],
            'vm_template': template,
            'new_vm_name': server['new_vm_name'],
            # 숫자처럼 보여도 입력값 그대로 문자열로 유지
            'vm_memory': str(server['vm_memory']),
            'vm_cores': str(server['vm_cores']),
            'ci_user': server['ci_user'],
            'ci_password': server['ci_password'],
            'ipconfig0': server['ipconfig0']
        }
        if extra_vars:
            play_vars.update(extra_vars)

        return {
            'name': f"Provision VM {server['new_vm_name']}",
            'hosts': 'localhost',
            'gather_facts': False,
            'vars': play_vars,
            'tasks': [
                {
                    'name': 'Clone VM from template',
                    PROXMOX_MODULE: dict(
                        self._proxmox_auth(),
                        clone='{{ vm_template }}',
                        name='{{ new_vm_name }}',
                        full=True,
                        timeout=500
                    )
                },
                {
                    'name': 'Apply cloud-init configuration',
                    PROXMOX_MODULE: dict(
                        self._proxmox_auth(),
                        name='{{ new_vm_name }}',
                        memory='{{ vm_memory }}',
                        cores='{{ vm_cores }}',
                        ciuser='{{ ci_user }}',
                        cipassword='{{ ci_password }}',
                        ipconfig={'ipconfig0': '{{ ipconfig0 }}'},
                        update=True
                    )
                },
                {
                    'name': 'Start VM',
                    PROXMOX_MODULE: dict(
                        self._proxmox_auth(),
                        name='{{ new_vm_name }}',
                        state='started'
                    )
                }
            ]
        }

    def _inventory_play(self, plan: ReplicationPlan) -> Dict[str, Any]:
        tasks = []
        for label, host_var, group in (('primary', 'master_host', MASTER_GROUP),
                                       ('replica', 'replica_host', REPLICA_GROUP)):
            tasks.append({
                'name': f'Register {label} host',
                'ansible.builtin.add_host': {
                    'name': '{{ %s }}' % host_var,
                    'groups': group,
                    'ansible_user': '{{ ops_ssh_user }}',
                    'ansible_password': '{{ ops_ssh_password }}',
                    'ansible_become_password': '{{ ops_ssh_password }}'
                }
            })
        for label, host_var in (('primary', 'master_host'), ('replica', 'replica_host')):
            tasks.append({
                'name': f'Wait for {label} SSH',
                'ansible.builtin.wait_for': {
                    'host': '{{ %s }}' % host_var,
                    'port': 22,
                    'delay': 10,
                    'timeout': 600
                }
            })

        return {
            'name': 'Register MySQL hosts',
            'hosts': 'localhost',
            'gather_facts': False,
            'vars': {
                'master_host': plan.master_host,
                'replica_host': plan.replica_host,
                'ops_ssh_user': self.ops_ssh_user,
                'ops_ssh_password': self.ops_ssh_password
            },
            'tasks': tasks
        }

    def _primary_play(self, plan: ReplicationPlan) -> Dict[str, Any]:
        return {
            'name': f'Prepare primary {plan.master_name}',
            'hosts': MASTER_GROUP,
            'gather_facts': False,
            'become': True,
            'vars': {
                'repl_user': plan.repl_user,
                'repl_password': plan.repl_password,
                'mysql_admin_password': "{{ lookup('env', 'MYSQL_ADMIN_PASSWORD') }}"
            },
            'tasks': [
                {
                    'name': 'Ensure replication account exists',
                    MYSQL_USER_MODULE: {
                        'name': '{{ repl_user }}',
                        'host': '%',
                        'password': '{{ repl_password }}',
                        'priv': REPLICATION_PRIVILEGES,
                        'state': 'present',
                        'login_user': 'root',
                        'login_password': '{{ mysql_admin_password }}'
                    }
                }
            ]
        }

    def _replica_play(self, server: Mapping[str, Any], plan: ReplicationPlan) -> Dict[str, Any]:
        def replication(name, mode, **params):
            return {
                'name': name,
                MYSQL_REPLICATION_MODULE: dict(
                    mode=mode,
                    login_user='root',
                    login_password='{{ mysql_login_password }}',
                    **params
                )
            }

        fetch_status = replication('Fetch replica status', 'getreplica')
        fetch_status['register'] = 'replica_status'

        return {
            'name': f"Prepare replica {server['new_vm_name']}",
            'hosts': REPLICA_GROUP,
            'gather_facts': False,
            'become': True,
            'vars': {
                'master_host': plan.master_host,
                'server_id': plan.server_id,
                'repl_user': plan.repl_user,
                'repl_password': plan.repl_password,
                'mysql_login_password': server['mysql_password'],
                'replication_conf': self.replication_conf,
                # MySQL 8.0.22 이후 Replica_*, 이전 버전은 Slave_*
                'io_running': "{{ replica_status.Replica_IO_Running | default(replica_status.Slave_IO_Running | default('No')) }}",
                'sql_running': "{{ replica_status.Replica_SQL_Running | default(replica_status.Slave_SQL_Running | default('No')) }}"
            },
            'tasks': [
                {
                    'name': 'Write replication configuration',
                    'ansible.builtin.copy': {
                        'dest': '{{ replication_conf }}',
                        'content': REPLICATION_CONF_TEMPLATE,
                        'owner': 'root',
                        'group': 'root',
                        'mode': '0644'
                    },
                    'notify': RESTART_HANDLER
                },
                {
                    'name': 'Apply configuration changes',
                    'ansible.builtin.meta': 'flush_handlers'
                },
                replication('Stop replica', 'stopreplica'),
                replication('Reset replica', 'resetreplicaall'),
                replication(
                    'Configure replication source',
                    'changeprimary',
                    primary_host='{{ master_host }}',
                    primary_user='{{ repl_user }}',
                    primary_password='{{ repl_password }}',
                    primary_auto_position=True
                ),
                replication('Start replica', 'startreplica'),
                fetch_status,
                {
                    'name': 'Verify replication threads',
                    'ansible.builtin.fail': {
                        'msg': 'Replication is not running (IO thread: {{ io_running }}, SQL thread: {{ sql_running }})'
                    },
                    'when': "io_running != 'Yes' or sql_running != 'Yes'"
                }
            ],
            'handlers': [
                {
                    'name': RESTART_HANDLER,
                    'ansible.builtin.service': {
                        'name': 'mysql',
                        'state': 'restarted'
                    }
                }
            ]
        }

    @staticmethod
    def _proxmox_auth() -> Dict[str, Any]:
        return {
            'api_host': '{{ proxmox_api_host }}',
            'api_user': '{{ proxmox_api_user }}',
            'api_token_id': '{{ proxmox_api_token_id }}',
            'api_token_secret': '{{ proxmox_api_token_secret }}',
            'node': '{{ proxmox_node }}'
        }
