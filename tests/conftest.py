"""Shared pytest fixtures for HA Platform tests."""
import os

import pytest

# Celery 앱은 import 시점에 Flask 앱을 만들므로 테스트 설정을 먼저 지정
os.environ.setdefault('FLASK_CONFIG', 'testing')

from ha_platform import create_app, db
from ha_platform.services.semaphore_client import SemaphoreClient


PRIMARY_PAYLOAD = {
    'new_vm_name': 'db1',
    'vm_memory': 2048,
    'vm_cores': 2,
    'ci_user': 'ubuntu',
    'ci_password': 'cloudpass1',
    'mysql_password': 'mysqlpass1',
    'ipconfig0': 'ip=192.168.0.39/24,gw=192.168.0.1',
    'is_master': 'master',
    'provider': 'proxmox',
}

REPLICA_PAYLOAD = {
    'new_vm_name': 'db2',
    'vm_memory': 2048,
    'vm_cores': 2,
    'ci_user': 'ubuntu',
    'ci_password': 'cloudpass2',
    'mysql_password': 'mysqlpass2',
    'ipconfig0': 'ip=192.168.0.40/24,gw=192.168.0.1',
}


class FakeSemaphore:
    """Scripted stand-in for SemaphoreClient.

    ``statuses`` is consumed one entry per status poll; the last entry
    repeats once the script runs out.
    """

    def __init__(self, statuses=('success',), template_id=11, task_id=42):
        self.statuses = list(statuses)
        self.template_id = template_id
        self.task_id = task_id
        self.calls = []
        self.fail_on = {}

    def _maybe_fail(self, operation):
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def create_template(self, spec):
        self.calls.append(('create_template', dict(spec)))
        self._maybe_fail('create_template')
        return {'id': self.template_id, 'name': spec['name']}

    def start_task(self, template_id):
        self.calls.append(('start_task', template_id))
        self._maybe_fail('start_task')
        return {'id': self.task_id, 'template_id': template_id}

    def get_task_status(self, task_id):
        self.calls.append(('get_task_status', task_id))
        self._maybe_fail('get_task_status')
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return {'id': task_id, 'status': status}

    def create_environment(self, payload):
        self.calls.append(('create_environment', dict(payload)))
        self._maybe_fail('create_environment')
        return {'id': 7, 'name': payload.get('name')}

    def calls_to(self, operation):
        return [args for name, args in self.calls if name == operation]


@pytest.fixture
def semaphore(monkeypatch):
    """Route every SemaphoreClient.from_config() call to one FakeSemaphore."""
    fake = FakeSemaphore()
    monkeypatch.setattr(
        SemaphoreClient, 'from_config',
        classmethod(lambda cls, config, session=None: fake)
    )
    return fake


@pytest.fixture
def app(tmp_path, semaphore):
    app = create_app('testing', {'PLAYBOOK_DIR': str(tmp_path / 'playbooks')})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def primary_payload():
    return dict(PRIMARY_PAYLOAD)


@pytest.fixture
def replica_payload():
    return dict(REPLICA_PAYLOAD)
