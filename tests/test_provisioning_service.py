"""Tests for the provisioning orchestrator."""
import os

import pytest
import yaml
from werkzeug.security import check_password_hash

from ha_platform import db
from ha_platform.errors import (
    ConflictError,
    InvalidIpConfigError,
    NotFoundError,
    ProtocolError,
    StorageError,
    UpstreamError,
    ValidationError,
)
from ha_platform.models import ProxmoxCredential, Server
from ha_platform.services import JobState, ProvisioningService


@pytest.fixture
def service(app):
    return ProvisioningService(app.config)


class TestCreateServer:

    def test_stores_record_and_playbook(self, service, primary_payload):
        result = service.create_server(primary_payload)

        server = result['server']
        assert server['new_vm_name'] == 'db1'
        assert server['status'] == 'queued'
        assert 'ci_password' not in server
        assert 'mysql_password' not in server
        assert os.path.exists(result['playbook']['path'])
        assert result['playbook']['url'].endswith('/db1.yml')

    def test_hashes_secrets(self, service, primary_payload):
        service.create_server(primary_payload)

        stored = Server.get_by_name('db1')
        assert stored.ci_password != primary_payload['ci_password']
        assert check_password_hash(stored.ci_password, primary_payload['ci_password'])
        assert check_password_hash(stored.mysql_password, primary_payload['mysql_password'])

    def test_playbook_keeps_plaintext_for_automation(self, service, primary_payload):
        result = service.create_server(primary_payload)

        with open(result['playbook']['path'], encoding='utf-8') as f:
            document = yaml.safe_load(f)
        assert document[0]['vars']['ci_password'] == primary_payload['ci_password']

    def test_duplicate_name_conflicts(self, service, primary_payload):
        service.create_server(primary_payload)

        with pytest.raises(ConflictError):
            service.create_server(primary_payload)

        assert Server.query.count() == 1

    def test_registered_credential_overrides_config(self, service, primary_payload):
        db.session.add(ProxmoxCredential(
            credential_name='lab', api_user='ops@pve', api_token='tok',
            api_url='pve.lab', api_token_id='ops-token'
        ))
        db.session.commit()

        result = service.create_server(primary_payload)

        with open(result['playbook']['path'], encoding='utf-8') as f:
            play_vars = yaml.safe_load(f)[0]['vars']
        assert play_vars['proxmox_api_host'] == 'pve.lab'
        assert play_vars['proxmox_api_user'] == 'ops@pve'
        assert 'tok' not in play_vars.values()

    @pytest.mark.parametrize('field, value', [
        ('vm_memory', 'lots'),
        ('vm_cores', 0),
        ('ci_password', 'short'),
        ('ipconfig0', '192.168.0.39'),
        ('provider', 'gcp'),
        ('new_vm_name', '../db1'),
    ])
    def test_rejects_invalid_fields(self, service, primary_payload, field, value):
        primary_payload[field] = value

        with pytest.raises(ValidationError) as excinfo:
            service.create_server(primary_payload)

        assert field in excinfo.value.details
        assert Server.query.count() == 0

    def test_rejects_unknown_fields(self, service, primary_payload):
        primary_payload['surprise'] = True

        with pytest.raises(ValidationError) as excinfo:
            service.create_server(primary_payload)

        assert 'surprise' in excinfo.value.details

    def test_accepts_numeric_strings(self, service, primary_payload):
        primary_payload['vm_memory'] = '4096'

        result = service.create_server(primary_payload)

        assert result['server']['vm_memory'] == 4096


class TestCreateReplica:

    def test_role_is_parent_name_for_primary(self, service, primary_payload, replica_payload):
        parent = service.create_server(primary_payload)['server']

        result = service.create_replica(parent['id'], replica_payload)

        assert result['server']['is_master'] == 'db1'
        assert result['replication']['master_host'] == '192.168.0.39'
        assert result['replication']['replica_host'] == '192.168.0.40'
        assert 'repl_password' not in result['replication']

    def test_master_marker_is_case_insensitive(self, service, primary_payload, replica_payload):
        primary_payload['is_master'] = 'MASTER'
        parent = service.create_server(primary_payload)['server']

        result = service.create_replica(parent['id'], replica_payload)

        assert result['server']['is_master'] == 'db1'

    def test_role_propagates_from_replica_parent(self, service, primary_payload, replica_payload):
        parent = service.create_server(primary_payload)['server']
        replica = service.create_replica(parent['id'], replica_payload)['server']

        third = dict(replica_payload, new_vm_name='db3', ipconfig0='ip=192.168.0.41/24,gw=192.168.0.1')
        result = service.create_replica(replica['id'], third)

        assert result['server']['is_master'] == 'db1'

    def test_provider_falls_back_to_parent(self, service, primary_payload, replica_payload):
        primary_payload['provider'] = 'azure'
        parent = service.create_server(primary_payload)['server']

        result = service.create_replica(parent['id'], replica_payload)

        assert result['server']['provider'] == 'azure'

    def test_explicit_provider_wins(self, service, primary_payload, replica_payload):
        parent = service.create_server(primary_payload)['server']
        replica_payload['provider'] = 'azure'

        result = service.create_replica(parent['id'], replica_payload)

        assert result['server']['provider'] == 'azure'

    def test_writes_four_stage_playbook(self, service, primary_payload, replica_payload):
        parent = service.create_server(primary_payload)['server']

        result = service.create_replica(parent['id'], replica_payload)

        with open(result['playbook']['path'], encoding='utf-8') as f:
            document = yaml.safe_load(f)
        assert len(document) == 4
        assert document[3]['vars']['mysql_login_password'] == replica_payload['mysql_password']

    def test_missing_parent(self, service, replica_payload):
        with pytest.raises(NotFoundError):
            service.create_replica(999, replica_payload)

        assert Server.query.count() == 0

    def test_invalid_parent_ipconfig_stores_nothing(self, service, primary_payload, replica_payload):
        parent = service.create_server(primary_payload)['server']
        stored = db.session.get(Server, parent['id'])
        stored.ipconfig0 = 'dhcp'
        db.session.commit()

        with pytest.raises(InvalidIpConfigError):
            service.create_replica(parent['id'], replica_payload)

        assert Server.query.count() == 1

    def test_replica_rejects_is_master_field(self, service, primary_payload, replica_payload):
        parent = service.create_server(primary_payload)['server']
        replica_payload['is_master'] = 'master'

        with pytest.raises(ValidationError):
            service.create_replica(parent['id'], replica_payload)


class TestUpdateServer:

    def test_updates_status_and_ip(self, service, primary_payload):
        server = service.create_server(primary_payload)['server']

        updated = service.update_server(server['id'], {'status': 'active', 'ip': '192.168.0.39'})

        assert updated['status'] == 'active'
        assert updated['ip'] == '192.168.0.39'

    def test_requires_a_field(self, service, primary_payload):
        server = service.create_server(primary_payload)['server']

        with pytest.raises(ValidationError, match='No fields to update'):
            service.update_server(server['id'], {})

    def test_missing_server(self, service):
        with pytest.raises(NotFoundError):
            service.update_server(404, {'status': 'active'})


class TestSubmitAndRun:

    def test_success_marks_server_active(self, service, semaphore, primary_payload):
        service.create_server(primary_payload)
        semaphore.statuses = ['waiting', 'running', 'success']

        result = service.submit_and_run({'name': 'db1', 'inventory_id': 1, 'repository_id': 1})

        assert result['state'] == JobState.SUCCEEDED
        assert result['polls'] == 3
        assert result['template_result']['id'] == semaphore.template_id
        assert result['start_result']['id'] == semaphore.task_id
        assert result['final_status']['status'] == 'success'
        assert result['error'] is None
        assert Server.get_by_name('db1').status == 'active'

    def test_defaults_playbook_path_and_app(self, service, semaphore):
        service.submit_and_run({'name': 'db1'})

        spec = semaphore.calls_to('create_template')[0]
        assert spec['playbook'].endswith(os.path.join('playbooks', 'db1.yml'))
        assert spec['app'] == 'ansible'

    def test_passes_extra_fields_through(self, service, semaphore):
        service.submit_and_run({'name': 'db1', 'description': 'primary', 'playbook': 'site.yml'})

        spec = semaphore.calls_to('create_template')[0]
        assert spec['description'] == 'primary'
        assert spec['playbook'] == 'site.yml'

    def test_job_error_marks_server_failed(self, service, semaphore, primary_payload):
        service.create_server(primary_payload)
        semaphore.statuses = ['running', 'error']

        result = service.submit_and_run({'name': 'db1'})

        assert result['state'] == JobState.FAILED
        assert result['final_status']['status'] == 'error'
        assert Server.get_by_name('db1').status == 'failed'

    def test_upstream_failure_is_reported_not_raised(self, service, semaphore):
        semaphore.fail_on['create_template'] = UpstreamError(400, {'error': 'bad'})

        result = service.submit_and_run({'name': 'db1'})

        assert result['state'] == JobState.FAILED
        assert result['template_result'] is None
        assert result['error'] == {
            'type': 'UpstreamError',
            'message': 'Semaphore returned HTTP 400',
            'status': 400,
            'body': {'error': 'bad'},
        }
        assert semaphore.calls_to('start_task') == []

    def test_protocol_failure_after_template(self, service, semaphore):
        semaphore.fail_on['start_task'] = ProtocolError('Semaphore task start response has no id')

        result = service.submit_and_run({'name': 'db1'})

        assert result['template_result']['id'] == semaphore.template_id
        assert result['start_result'] is None
        assert result['error']['type'] == 'ProtocolError'

    def test_requires_name(self, service, semaphore):
        with pytest.raises(ValidationError):
            service.submit_and_run({'inventory_id': 1})

        assert semaphore.calls == []


class TestCredentialsAndGroups:

    def test_credential_listing_hides_token(self, service):
        service.add_credential({
            'credential_name': 'lab', 'api_user': 'root@pam', 'api_token': 'secret',
            'api_url': 'pve.lab', 'api_token_id': 'automation',
        })

        listed = service.list_credentials()

        assert listed[0]['credential_name'] == 'lab'
        assert 'api_token' not in listed[0]

    def test_group_requires_existing_server(self, service):
        with pytest.raises(NotFoundError):
            service.add_group({'server_id': 5, 'lb_algorithm': 'round_robin', 'proxy_ip': '10.0.0.5'})

    def test_group_rejects_unknown_algorithm(self, service, primary_payload):
        server = service.create_server(primary_payload)['server']

        with pytest.raises(ValidationError):
            service.add_group({'server_id': server['id'], 'lb_algorithm': 'random', 'proxy_ip': '10.0.0.5'})

    def test_group_created(self, service, primary_payload):
        server = service.create_server(primary_payload)['server']

        group = service.add_group({
            'server_id': server['id'], 'lb_algorithm': 'least_connections', 'proxy_ip': '10.0.0.5'
        })

        assert group['server_name'] == 'db1'
        assert service.list_groups()[0]['id'] == group['id']


class TestStorageFailure:

    def test_server_not_kept_when_playbook_write_fails(self, service, primary_payload, monkeypatch):
        def fail(name, content):
            raise StorageError(f'Failed to write playbook for {name}')

        monkeypatch.setattr(service.store, 'store', fail)

        with pytest.raises(StorageError):
            service.create_server(primary_payload)

        assert Server.query.count() == 0

    def test_retry_after_write_failure_succeeds(self, service, primary_payload, monkeypatch):
        real_store = service.store.store
        outcomes = [StorageError('disk full')]

        def flaky(name, content):
            if outcomes:
                raise outcomes.pop()
            return real_store(name, content)

        monkeypatch.setattr(service.store, 'store', flaky)

        with pytest.raises(StorageError):
            service.create_server(primary_payload)
        result = service.create_server(primary_payload)

        assert result['server']['new_vm_name'] == 'db1'
        assert Server.query.count() == 1

    def test_replica_not_kept_when_playbook_write_fails(self, service, primary_payload, replica_payload,
                                                         monkeypatch):
        parent = service.create_server(primary_payload)['server']

        def fail(name, content):
            raise StorageError(f'Failed to write playbook for {name}')

        monkeypatch.setattr(service.store, 'store', fail)

        with pytest.raises(StorageError):
            service.create_replica(parent['id'], replica_payload)

        assert [server.new_vm_name for server in Server.query.all()] == ['db1']


class TestRoleReference:

    def test_unknown_primary_rejected(self, service, primary_payload):
        primary_payload['is_master'] = 'ghost-primary'

        with pytest.raises(ValidationError) as excinfo:
            service.create_server(primary_payload)

        assert 'is_master' in excinfo.value.details
        assert Server.query.count() == 0

    def test_role_must_name_a_primary(self, service, primary_payload, replica_payload):
        parent = service.create_server(primary_payload)['server']
        service.create_replica(parent['id'], replica_payload)

        third = dict(primary_payload, new_vm_name='db3', ipconfig0='ip=192.168.0.41/24,gw=192.168.0.1',
                     is_master='db2')

        with pytest.raises(ValidationError):
            service.create_server(third)

    def test_existing_primary_name_accepted(self, service, primary_payload):
        service.create_server(primary_payload)

        second = dict(primary_payload, new_vm_name='db2', ipconfig0='ip=192.168.0.40/24,gw=192.168.0.1',
                      is_master='db1')
        result = service.create_server(second)

        assert result['server']['is_master'] == 'db1'


class TestEnvironmentProxy:

    def test_credential_form_is_forwarded(self, service, semaphore):
        form = {
            'credential_name': 'lab', 'api_user': 'root@pam', 'api_token': 'secret',
            'api_url': 'pve.lab', 'api_token_id': 'automation',
        }

        result = service.create_environment(form)

        sent = semaphore.calls_to('create_environment')[0]
        assert sent['name'] == 'lab'
        assert sent['api_token_id'] == 'automation'
        assert result['name'] == 'lab'

    def test_explicit_name_kept(self, service, semaphore):
        service.create_environment({'name': 'prod', 'credential_name': 'lab'})

        assert semaphore.calls_to('create_environment')[0]['name'] == 'prod'

    def test_body_must_be_object(self, service):
        with pytest.raises(ValidationError):
            service.create_environment(['prod'])
