"""Tests for the on-disk playbook store."""
import os
import stat
import threading

import pytest

from ha_platform.errors import StorageError
from ha_platform.services.playbook_store import PlaybookStore


@pytest.fixture
def store(tmp_path):
    return PlaybookStore(str(tmp_path / 'playbooks'), 'http://files.test/playbooks/')


def test_store_writes_file_and_returns_locator(store, tmp_path):
    locator = store.store('db1', '---\n- name: "x"\n')

    assert locator.name == 'db1'
    assert locator.path == str(tmp_path / 'playbooks' / 'db1.yml')
    assert locator.url == 'http://files.test/playbooks/db1.yml'
    assert store.read('db1') == '---\n- name: "x"\n'


def test_last_write_wins(store):
    store.store('db1', 'first')
    store.store('db1', 'second')
    assert store.read('db1') == 'second'


def test_no_temp_file_left_behind(store, tmp_path):
    store.store('db1', 'content')
    assert os.listdir(tmp_path / 'playbooks') == ['db1.yml']


@pytest.mark.skipif(os.name != 'posix', reason='POSIX permissions only')
def test_restrictive_permissions(store, tmp_path):
    store.store('db1', 'secret')
    file_mode = stat.S_IMODE(os.stat(tmp_path / 'playbooks' / 'db1.yml').st_mode)
    assert file_mode & 0o007 == 0


@pytest.mark.parametrize('name', ['../etc/passwd', 'a/b', '', '..'])
def test_rejects_unsafe_names(store, name):
    with pytest.raises(StorageError):
        store.locate(name)


def test_write_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / 'not-a-dir'
    blocker.write_text('file in the way')
    store = PlaybookStore(str(blocker), 'http://files.test')

    with pytest.raises(StorageError):
        store.store('db1', 'content')


def test_read_missing_raises_storage_error(store):
    with pytest.raises(StorageError):
        store.read('missing')


def test_concurrent_writes_for_same_name(store, tmp_path):
    contents = [f'version {i}' for i in range(8)]
    errors = []
    barrier = threading.Barrier(len(contents))

    def write(content):
        barrier.wait()
        try:
            for _ in range(20):
                store.store('db1', content)
        except StorageError as e:
            errors.append(e)

    threads = [threading.Thread(target=write, args=(content,)) for content in contents]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert store.read('db1') in contents
    assert os.listdir(tmp_path / 'playbooks') == ['db1.yml']
