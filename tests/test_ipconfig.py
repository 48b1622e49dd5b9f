"""Tests for ipconfig0 parsing and replica server-id derivation."""
import pytest

from ha_platform.errors import InvalidIpConfigError, ValidationError
from ha_platform.utils.ipconfig import extract_host, replica_server_id


class TestExtractHost:

    def test_extracts_address_between_equals_and_slash(self):
        assert extract_host('ip=192.168.0.39/24,gw=192.168.0.1') == '192.168.0.39'

    def test_uses_first_equals_and_first_slash(self):
        assert extract_host('ip=10.0.0.5/16,gw=10.0.0.1,extra=a/b') == '10.0.0.5'

    def test_accepts_ipv6(self):
        assert extract_host('ip6=fd00::10/64,gw6=fd00::1') == 'fd00::10'

    @pytest.mark.parametrize('value', [
        'ip192.168.0.39/24',
        'ip=192.168.0.39',
        '192.168.0.39/24=x',
        'ip=/24,gw=192.168.0.1',
        'ip=not-an-ip/24,gw=192.168.0.1',
        '',
    ])
    def test_rejects_malformed(self, value):
        with pytest.raises(InvalidIpConfigError):
            extract_host(value)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidIpConfigError):
            extract_host(None)

    def test_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            extract_host('garbage')


class TestReplicaServerId:

    def test_deterministic(self):
        assert replica_server_id('192.168.0.40') == replica_server_id('192.168.0.40')

    def test_known_value(self):
        # 192.168.0.40 == 3232235560
        assert replica_server_id('192.168.0.40') == 3232235562

    def test_never_collides_with_primary_default(self):
        assert replica_server_id('0.0.0.0') == 2
        assert replica_server_id('255.255.255.255') >= 2

    def test_stays_inside_mysql_range(self):
        assert 2 <= replica_server_id('fd00::ffff') <= 2 ** 32 - 1

    def test_distinct_hosts_get_distinct_ids(self):
        assert replica_server_id('192.168.0.40') != replica_server_id('192.168.0.41')
