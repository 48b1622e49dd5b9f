"""
ipconfig0 (cloud-init 네트워크 설정) 문자열 처리
"""
import ipaddress

from ha_platform.errors import InvalidIpConfigError

# MySQL server_id 범위: 1..2^32-1, 1 은 primary 기본값이므로 제외
_SERVER_ID_SPAN = 2 ** 32 - 2


def extract_host(ipconfig: str) -> str:
    """`ip=<addr>/<prefix>,gw=<addr>` 에서 첫 '=' 와 첫 '/' 사이의 주소 추출"""
    if not isinstance(ipconfig, str):
        raise InvalidIpConfigError('ipconfig0 must be a string')

    eq = ipconfig.find('=')
    slash = ipconfig.find('/')
    if eq == -1 or slash == -1 or slash < eq:
        raise InvalidIpConfigError(
            f"ipconfig0 must look like: ip=192.168.0.39/24,gw=192.168.0.1 (got {ipconfig!r})"
        )

    host = ipconfig[eq + 1:slash].strip()
    if not host:
        raise InvalidIpConfigError('ipconfig0 has an empty ip address')

    try:
        ipaddress.ip_address(host)
    except ValueError:
        raise InvalidIpConfigError(f"ipconfig0 ip address is invalid: {host!r}")

    return host


def replica_server_id(host: str) -> int:
    """replica 호스트 주소로부터 결정적인 MySQL server_id 생성 (2 이상)"""
    return int(ipaddress.ip_address(host)) % _SERVER_ID_SPAN + 2
