"""
생성된 플레이북 파일 저장소
"""
import os
import logging
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from werkzeug.utils import secure_filename

from ha_platform.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybookLocator:
    """저장된 플레이북 위치 (로컬 경로 + 조회 URL)"""
    name: str
    path: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'path': self.path, 'url': self.url}


class PlaybookStore:
    """서버 이름별 플레이북 파일 저장 (같은 이름이면 마지막 쓰기가 유지됨)

    플레이북에는 평문 비밀번호가 들어가므로 루트 디렉토리는 0750,
    파일은 0640 으로 만든다. 디렉토리 접근 제어는 배포 환경의 몫이다.
    """

    def __init__(self, root_dir: str, base_url: str):
        self.root_dir = os.path.abspath(root_dir)
        self.base_url = base_url.rstrip('/')

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'PlaybookStore':
        return cls(config['PLAYBOOK_DIR'], config['PLAYBOOK_BASE_URL'])

    def locate(self, server_name: str) -> PlaybookLocator:
        """서버 이름에 대응하는 플레이북 위치"""
        filename = self._filename(server_name)
        return PlaybookLocator(
            name=server_name,
            path=os.path.join(self.root_dir, filename),
            url=f"{self.base_url}/{filename}"
        )

    def store(self, server_name: str, content: str) -> PlaybookLocator:
        """플레이북 저장 - 실패 시 StorageError"""
        locator = self.locate(server_name)
        try:
            os.makedirs(self.root_dir, mode=0o750, exist_ok=True)
            # 쓰기마다 고유한 임시 파일 (같은 이름 동시 저장 시 마지막 replace 가 유지됨)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.root_dir, prefix=f".{os.path.basename(locator.path)}.", suffix='.tmp'
            )
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    os.fchmod(f.fileno(), 0o640)
                    f.write(content)
                os.replace(tmp_path, locator.path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"❌ 플레이북 저장 실패: {locator.path} ({e.strerror or e})")
            raise StorageError(f"Failed to write playbook for {server_name}") from e

        logger.info(f"💾 플레이북 저장 완료: {locator.path}")
        return locator

    def read(self, server_name: str) -> str:
        """저장된 플레이북 읽기"""
        locator = self.locate(server_name)
        try:
            with open(locator.path, 'r', encoding='utf-8') as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Failed to read playbook for {server_name}") from e

    @staticmethod
    def _filename(server_name: str) -> str:
        safe_name = secure_filename(server_name or '')
        if not safe_name or safe_name != server_name:
            raise StorageError(f"Unsafe playbook name: {server_name!r}")
        return f"{safe_name}.yml"
