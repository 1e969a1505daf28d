"""Token Store

게임별 인증 레코드와 게임 간 공유 토큰 저장소.
"찾을 수 없음"은 예외가 아니라 None으로 표현한다.
"""

import json
import logging
import os
import platform
from abc import ABC, abstractmethod
from pathlib import Path

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from playkit_auth.auth.state import AuthRecord

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """토큰 저장소 인터페이스

    Example:
        store = FileTokenStore()
        await store.save_auth_record("game-1", record)
        record = await store.load_auth_record("game-1")
        await store.clear_auth_record("game-1")
    """

    @abstractmethod
    async def load_auth_record(self, game_id: str) -> AuthRecord | None:
        """게임별 레코드 로드 (없으면 None)"""

    @abstractmethod
    async def save_auth_record(self, game_id: str, record: AuthRecord) -> bool:
        """게임별 레코드 저장"""

    @abstractmethod
    async def clear_auth_record(self, game_id: str) -> bool:
        """게임별 레코드 삭제"""

    @abstractmethod
    async def load_shared_token(self) -> str | None:
        """공유 토큰 로드 (없으면 None)"""

    @abstractmethod
    async def save_shared_token(self, token: str) -> bool:
        """공유 토큰 저장"""

    @abstractmethod
    async def clear_all(self) -> bool:
        """모든 레코드와 공유 토큰 삭제"""


class MemoryTokenStore(TokenStore):
    """프로세스 메모리 저장소 (테스트, 비영구 환경용)"""

    def __init__(self):
        self._records: dict[str, AuthRecord] = {}
        self._shared_token: str | None = None

    async def load_auth_record(self, game_id: str) -> AuthRecord | None:
        return self._records.get(game_id)

    async def save_auth_record(self, game_id: str, record: AuthRecord) -> bool:
        self._records[game_id] = record
        return True

    async def clear_auth_record(self, game_id: str) -> bool:
        self._records.pop(game_id, None)
        return True

    async def load_shared_token(self) -> str | None:
        return self._shared_token

    async def save_shared_token(self, token: str) -> bool:
        self._shared_token = token
        return True

    async def clear_all(self) -> bool:
        self._records.clear()
        self._shared_token = None
        return True


class FileTokenStore(TokenStore):
    """파일 기반 저장소

    게임마다 ``game-<hex(game_id)>.json``, 공유 토큰은 ``shared.json``.
    파일 권한은 사용자 읽기/쓰기만 허용 (0o600).
    """

    SHARED_FILE = "shared.json"

    def __init__(self, storage_dir: Path | None = None):
        self.storage_dir = storage_dir or self._default_storage_dir()
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _default_storage_dir(self) -> Path:
        """OS별 기본 저장 디렉토리"""
        system = platform.system()
        if system == "Windows":
            base = Path(os.environ.get("APPDATA", Path.home()))
        elif system == "Darwin":  # macOS
            base = Path.home() / "Library" / "Application Support"
        else:  # Linux
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        return base / "playkit" / "auth"

    def _record_path(self, game_id: str) -> Path:
        # hex: 경로 탈출 없음, game id마다 고유 (대소문자 무시 FS 포함)
        return self.storage_dir / f"game-{game_id.encode().hex()}.json"

    def _write(self, path: Path, data: dict) -> bool:
        try:
            with open(path, "w") as f:
                json.dump(data, f, indent=2)
            path.chmod(0o600)
            return True
        except OSError as e:
            logger.warning("Token save error (%s): %s", path.name, e)
            return False

    def _read(self, path: Path) -> dict | None:
        if not path.exists():
            return None
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Token load error (%s): %s", path.name, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Token load error (%s): not a JSON object", path.name)
            return None
        return data

    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.warning("Token delete error (%s): %s", path.name, e)
            return False

    async def load_auth_record(self, game_id: str) -> AuthRecord | None:
        data = self._read(self._record_path(game_id))
        if not data:
            return None
        try:
            return AuthRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Corrupt auth record for %s: %s", game_id, e)
            return None

    async def save_auth_record(self, game_id: str, record: AuthRecord) -> bool:
        return self._write(self._record_path(game_id), record.to_dict())

    async def clear_auth_record(self, game_id: str) -> bool:
        return self._unlink(self._record_path(game_id))

    async def load_shared_token(self) -> str | None:
        data = self._read(self.storage_dir / self.SHARED_FILE)
        if not data:
            return None
        token = data.get("token")
        return token if isinstance(token, str) and token else None

    async def save_shared_token(self, token: str) -> bool:
        return self._write(self.storage_dir / self.SHARED_FILE, {"token": token})

    async def clear_all(self) -> bool:
        success = True
        for file_path in self.storage_dir.glob("*.json"):
            if not self._unlink(file_path):
                success = False
        return success


class KeyringTokenStore(TokenStore):
    """OS 자격증명 저장소 (keyring)

    - Windows: Credential Locker
    - macOS: Keychain
    - Linux: libsecret

    keyring은 목록 조회가 안 되므로 저장한 game id 목록을
    별도 항목(``__index__``)으로 관리한다.
    """

    SERVICE_NAME = "playkit-auth"
    SHARED_KEY = "__shared__"
    INDEX_KEY = "__index__"

    def __init__(self, service_name: str | None = None):
        self.service_name = service_name or self.SERVICE_NAME

    def _get(self, key: str) -> str | None:
        try:
            return keyring.get_password(self.service_name, key)
        except KeyringError as e:
            logger.warning("Keyring read error (%s): %s", key, e)
            return None

    def _set(self, key: str, value: str) -> bool:
        try:
            keyring.set_password(self.service_name, key, value)
            return True
        except KeyringError as e:
            logger.warning("Keyring write error (%s): %s", key, e)
            return False

    def _delete(self, key: str) -> bool:
        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            # 이미 없음
            pass
        except KeyringError as e:
            logger.warning("Keyring delete error (%s): %s", key, e)
            return False
        return True

    def _load_index(self) -> list[str]:
        raw = self._get(self.INDEX_KEY)
        if not raw:
            return []
        try:
            index = json.loads(raw)
        except ValueError:
            return []
        if not isinstance(index, list):
            return []
        return [game_id for game_id in index if isinstance(game_id, str)]

    def _save_index(self, game_ids: list[str]) -> bool:
        return self._set(self.INDEX_KEY, json.dumps(sorted(set(game_ids))))

    async def load_auth_record(self, game_id: str) -> AuthRecord | None:
        raw = self._get(f"game:{game_id}")
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("not a JSON object")
            return AuthRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Corrupt auth record for %s: %s", game_id, e)
            return None

    async def save_auth_record(self, game_id: str, record: AuthRecord) -> bool:
        if not self._set(f"game:{game_id}", json.dumps(record.to_dict())):
            return False
        index = self._load_index()
        if game_id not in index:
            return self._save_index(index + [game_id])
        return True

    async def clear_auth_record(self, game_id: str) -> bool:
        if not self._delete(f"game:{game_id}"):
            return False
        index = self._load_index()
        if game_id in index:
            index.remove(game_id)
            return self._save_index(index)
        return True

    async def load_shared_token(self) -> str | None:
        return self._get(self.SHARED_KEY) or None

    async def save_shared_token(self, token: str) -> bool:
        return self._set(self.SHARED_KEY, token)

    async def clear_all(self) -> bool:
        success = True
        for game_id in self._load_index():
            if not self._delete(f"game:{game_id}"):
                success = False
        for key in (self.SHARED_KEY, self.INDEX_KEY):
            if not self._delete(key):
                success = False
        return success
