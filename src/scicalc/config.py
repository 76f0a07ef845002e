import logging
import os
from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------
# 設定（環境変数から読み込む）
# ---------------------------------------------
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))

DEFAULT_DB_PATH = os.path.join(CURRENT_DIR, "calculator.db")
DEFAULT_HISTORY_LIMIT = 10

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class AppConfig:
    db_path: str = DEFAULT_DB_PATH
    remote_url: Optional[str] = None
    project_id: str = ""
    public_key: str = ""
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    history_limit: int = DEFAULT_HISTORY_LIMIT
    log_level: str = "INFO"

    @property
    def remote(self) -> bool:
        """リモート保存を使うかどうか"""
        return bool(self.remote_url)


def _int(value: Optional[str], default: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def load_config(environ=None) -> AppConfig:
    env = os.environ if environ is None else environ
    return AppConfig(
        db_path=env.get("CALC_DB_PATH") or DEFAULT_DB_PATH,
        remote_url=(env.get("CALC_REMOTE_URL") or "").rstrip("/") or None,
        project_id=env.get("CALC_PROJECT_ID", ""),
        public_key=env.get("CALC_PUBLIC_KEY", ""),
        user_id=env.get("CALC_USER_ID") or None,
        user_name=env.get("CALC_USER_NAME") or None,
        history_limit=_int(env.get("CALC_HISTORY_LIMIT"), DEFAULT_HISTORY_LIMIT),
        log_level=(env.get("CALC_LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str = "INFO"):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
