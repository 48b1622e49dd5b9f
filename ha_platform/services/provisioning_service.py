"""
프로비저닝 오케스트레이션 서비스

서버 생성 / replica 생성은 DB 저장 → 플레이북 생성 → 플레이북 저장까지를
한 요청에서 처리한다. Semaphore 작업 실행은 항상 별도 호출(submit_and_run)이다.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from ha_platform import db
from ha_platform.errors import ConflictError, JobServiceError, NotFoundError, StorageError, ValidationError
from ha_platform.models import MASTER_MARKER, Group, ProxmoxCredential, Server
from ha_platform.services import validation
from ha_platform.services.job_poller import JobPoller, JobState
from ha_platform.services.playbook_builder import PlaybookBuilder, plan_replication, render_playbook
from ha_platform.services.playbook_store import PlaybookStore
from ha_platform.services.semaphore_client import SemaphoreClient

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = 'proxmox'

# 작업 상태 → 서버 상태
SERVER_STATUS_BY_JOB_STATE = {
    JobState.SUCCEEDED: 'active',
    JobState.FAILED: 'failed',
    JobState.TIMED_OUT: 'timeout',
}


class ProvisioningService:
    """프로비저닝 오케스트레이터"""

    def __init__(self, config: Mapping[str, Any],
                 builder: Optional[PlaybookBuilder] = None,
                 store: Optional[PlaybookStore] = None,
                 client: Optional[SemaphoreClient] = None):
        self.config = config
        self.builder = builder or PlaybookBuilder.from_config(config)
        self.store = store or PlaybookStore.from_config(config)
        self.client = client or SemaphoreClient.from_config(config)

    # ========================================
    # 서버 / replica
    # ========================================

    def list_servers(self) -> List[Dict[str, Any]]:
        return [server.to_dict() for server in Server.query.order_by(Server.id.desc()).all()]

    def create_server(self, payload: Any) -> Dict[str, Any]:
        """서버 레코드 생성 + VM 플레이북 생성/저장"""
        data = validation.validate_server(payload)
        self._check_role(data['is_master'])

        server = self._insert_server(data, role=data['is_master'], provider=data['provider'])

        document = self.builder.build_vm_playbook(data, self._proxmox_target())
        locator = self._store_and_commit(server.new_vm_name, document)

        logger.info(f"✅ 서버 생성 완료: {server.new_vm_name} (ID: {server.id}, role: {server.is_master})")
        return {'server': server.to_dict(), 'playbook': locator.to_dict()}

    def create_replica(self, parent_id: int, payload: Any) -> Dict[str, Any]:
        """부모 서버 기준 replica 레코드 생성 + 복제 플레이북 생성/저장"""
        data = validation.validate_replica(payload)

        parent = db.session.get(Server, parent_id)
        if parent is None:
            raise NotFoundError('Parent server not found')

        # 부모가 primary 면 부모 이름, 아니면 부모의 role 을 그대로 따름
        role = parent.master_name
        provider = data.get('provider') or parent.provider or DEFAULT_PROVIDER

        # 잘못된 ipconfig0 는 레코드 저장 전에 거른다
        plan = plan_replication(
            master_name=role,
            master_ipconfig=parent.ipconfig0,
            replica_ipconfig=data['ipconfig0'],
            repl_user=self.config['MYSQL_REPLICATION_USER'],
            repl_password=self.config['MYSQL_REPLICATION_PASSWORD']
        )

        replica = self._insert_server(data, role=role, provider=provider)

        document = self.builder.build_replica_playbook(data, plan, self._proxmox_target())
        locator = self._store_and_commit(replica.new_vm_name, document)

        logger.info(
            f"✅ replica 생성 완료: {replica.new_vm_name} (ID: {replica.id}) "
            f"→ primary {role} ({plan.master_host})"
        )
        return {
            'server': replica.to_dict(),
            'playbook': locator.to_dict(),
            'replication': plan.to_dict()
        }

    def update_server(self, server_id: int, payload: Any) -> Dict[str, Any]:
        """status / ip 갱신"""
        updates = validation.validate_server_update(payload)
        server = db.session.get(Server, server_id)
        if server is None:
            raise NotFoundError('Server not found')

        for key, value in updates.items():
            setattr(server, key, value)
        db.session.commit()
        logger.info(f"🔄 서버 정보 갱신: {server.new_vm_name} {updates}")
        return server.to_dict()

    def _check_role(self, role: str):
        """role 은 master 표식이거나 이미 존재하는 primary 이름이어야 함"""
        if role.lower() == MASTER_MARKER:
            return
        primary = Server.get_by_name(role)
        if primary is None or not primary.is_primary:
            message = f'"is_master" must be "{MASTER_MARKER}" or the name of an existing primary'
            raise ValidationError(message, details={'is_master': message})

    def _insert_server(self, data: Dict[str, Any], role: str, provider: str) -> Server:
        # 중복 이름은 사전 확인하지 않고 unique 제약으로 판단 (커밋은 플레이북 저장 후)
        server = Server(
            new_vm_name=data['new_vm_name'],
            vm_memory=data['vm_memory'],
            vm_cores=data['vm_cores'],
            ci_user=data['ci_user'],
            ci_password=generate_password_hash(data['ci_password']),
            mysql_password=generate_password_hash(data['mysql_password']),
            ipconfig0=data['ipconfig0'],
            is_master=role,
            provider=provider,
            status='queued'
        )
        db.session.add(server)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            logger.warning(f"⚠️ 서버 이름 중복: {data['new_vm_name']}")
            raise ConflictError('Server name must be unique')
        return server

    def _store_and_commit(self, name: str, document: List[Dict[str, Any]]):
        """플레이북 저장이 성공해야 레코드를 커밋 (실패 시 레코드도 남기지 않음)"""
        try:
            locator = self.store.store(name, render_playbook(document))
        except StorageError:
            db.session.rollback()
            raise
        db.session.commit()
        return locator

    def _proxmox_target(self) -> Dict[str, str]:
        """플레이북에 넣을 Proxmox 접속 정보 (등록된 자격 증명 우선)"""
        target = {
            'api_host': self.config['PROXMOX_ENDPOINT'],
            'api_user': self.config['PROXMOX_API_USER'],
            'api_token_id': self.config['PROXMOX_API_TOKEN_ID'],
            'node': self.config['PROXMOX_NODE']
        }
        credential = ProxmoxCredential.latest()
        if credential is not None:
            target.update({
                'api_host': credential.api_url,
                'api_user': credential.api_user,
                'api_token_id': credential.api_token_id
            })
        return target

    # ========================================
    # Semaphore 작업 실행
    # ========================================

    def submit_and_run(self, payload: Any, stop_event: Optional[threading.Event] = None,
                       on_poll: Optional[Callable[[int, Dict[str, Any]], None]] = None) -> Dict[str, Any]:
        """템플릿 생성 → 작업 시작 → 종료까지 폴링

        Semaphore 오류는 예외로 던지지 않고 결과의 error 에 담는다.
        """
        spec = validation.validate_template_spec(payload)
        spec.setdefault('playbook', self.store.locate(spec['name']).path)
        spec.setdefault('app', 'ansible')

        result = {
            'template_result': None,
            'start_result': None,
            'final_status': None,
            'state': JobState.CREATED,
            'polls': 0,
            'error': None
        }

        try:
            template = self.client.create_template(spec)
            result['template_result'] = template

            task = self.client.start_task(template['id'])
            result['start_result'] = task
            self._mark_server(spec['name'], 'provisioning')

            poller = JobPoller(
                self.client,
                interval=self.config['JOB_POLL_INTERVAL'],
                timeout=self.config['JOB_POLL_TIMEOUT'],
                stop_event=stop_event,
                on_poll=on_poll
            )
            poll_result = poller.run(task['id'])
            result['final_status'] = poll_result.status
            result['state'] = poll_result.state
            result['polls'] = poll_result.polls
        except JobServiceError as e:
            logger.error(f"❌ Semaphore 작업 실행 실패: {spec['name']} ({type(e).__name__}: {e.message})")
            result['state'] = JobState.FAILED
            result['error'] = e.to_dict()

        self._mark_server(spec['name'], SERVER_STATUS_BY_JOB_STATE.get(result['state']))
        return result

    def create_environment(self, payload: Any) -> Dict[str, Any]:
        """Semaphore 환경 생성 프록시"""
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object')
        body = dict(payload)
        # 자격 증명 폼(credential_name)으로 호출되는 경우 이름을 그대로 사용
        if not body.get('name') and body.get('credential_name'):
            body['name'] = body['credential_name']
        return self.client.create_environment(body)

    def _mark_server(self, name: str, status: Optional[str]):
        # 템플릿 이름과 같은 서버가 있을 때만 상태 반영
        if not status:
            return
        server = Server.get_by_name(name)
        if server is not None and server.status != status:
            server.update_status(status)

    # ========================================
    # Proxmox 자격 증명 / 그룹
    # ========================================

    def list_credentials(self) -> List[Dict[str, Any]]:
        credentials = ProxmoxCredential.query.order_by(ProxmoxCredential.id.desc()).all()
        return [credential.to_dict() for credential in credentials]

    def add_credential(self, payload: Any) -> Dict[str, Any]:
        data = validation.validate_credential(payload)
        credential = ProxmoxCredential(**data)
        db.session.add(credential)
        db.session.commit()
        logger.info(f"🔑 Proxmox 자격 증명 등록: {credential.credential_name}")
        return credential.to_dict()

    def list_groups(self) -> List[Dict[str, Any]]:
        return [group.to_dict() for group in Group.query.order_by(Group.id.desc()).all()]

    def add_group(self, payload: Any) -> Dict[str, Any]:
        data = validation.validate_group(payload)
        if db.session.get(Server, data['server_id']) is None:
            raise NotFoundError('Server not found')
        group = Group(**data)
        db.session.add(group)
        db.session.commit()
        logger.info(f"🧩 그룹 생성: server={group.server_id} {group.lb_algorithm} {group.proxy_ip}")
        return group.to_dict()
