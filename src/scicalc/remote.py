import logging
import time
from datetime import datetime
from typing import List, Optional

import requests

from scicalc.errors import PersistenceError
from scicalc.history import HistoryEntry, now
from scicalc.settings import Settings

logger = logging.getLogger(__name__)

# ---------------------------------------------
# レコードサービスのテーブル名
# ---------------------------------------------
HISTORY_TABLE = "calculation_history1"
SETTINGS_TABLE = "calculator_settings"
MEMORY_TABLE = "memory_value"

RETRY_STATUS = (429, 500, 502, 503, 504)


# ---------------------------------------------
# リトライ（指数バックオフ）
# ---------------------------------------------
def post_json(session: requests.Session, url: str, payload: dict, tries: int = 3, timeout: int = 10):
    last_err = None
    for i in range(tries):
        try:
            r = session.post(url, json=payload, timeout=timeout)
            if r.status_code in RETRY_STATUS:
                raise requests.HTTPError(f"HTTP {r.status_code} for {url}")
            r.raise_for_status()
            return r.json()
        except (requests.RequestException, ValueError) as e:
            last_err = e
            if i < tries - 1:
                time.sleep(2 ** i)
    raise PersistenceError(f"request to {url} failed: {last_err}") from last_err


def _owner(field: str, user_id: str) -> list:
    return [{"fieldName": field, "Operator": "ExactMatch", "values": [user_id]}]


def _fields(*names) -> list:
    return [{"Field": {"Name": name}} for name in names]


def _parse_time(value) -> datetime:
    if not value:
        return now()
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return now()


def _to_entry(record: dict) -> HistoryEntry:
    return HistoryEntry(
        calculation=record.get("calculation", ""),
        result=float(record.get("result") or 0),
        timestamp=_parse_time(record.get("timestamp")),
        entry_id=str(record["Id"]) if record.get("Id") is not None else None,
    )


class RemoteStore:
    """ユーザーごとのレコードをリモートのレコードサービスに保存する。

    読み込みは失敗時にリトライするが、書き込みは一度だけ試す。
    """

    def __init__(self, base_url: str, project_id: str = "", public_key: str = "",
                 session: Optional[requests.Session] = None, read_tries: int = 3, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.read_tries = read_tries
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Apper-Project-Id": project_id,
            "X-Apper-Public-Key": public_key,
        })

    def _url(self, table: str, action: str) -> str:
        return f"{self.base_url}/tables/{table}/records/{action}"

    def _fetch(self, table: str, params: dict) -> list:
        data = post_json(self.session, self._url(table, "fetch"), params,
                         tries=self.read_tries, timeout=self.timeout)
        if not data or not data.get("data"):
            return []
        return data["data"]

    def _write(self, table: str, action: str, params: dict) -> dict:
        data = post_json(self.session, self._url(table, action), params, tries=1, timeout=self.timeout)
        if not data or not data.get("success"):
            raise PersistenceError(f"{action} on {table} was rejected: {data}")
        return data

    def _find_id(self, table: str, user_id: str):
        records = self._fetch(table, {
            "Fields": _fields("Id"),
            "where": _owner("user_id", user_id),
            "pagingInfo": {"limit": 1, "offset": 0},
        })
        return records[0]["Id"] if records else None

    def _upsert(self, table: str, user_id: str, fields: dict, name: str):
        record_id = self._find_id(table, user_id)
        if record_id is None:
            self._write(table, "create", {"records": [dict(Name=name, user_id=user_id, **fields)]})
        else:
            self._write(table, "update", {"records": [dict(Id=record_id, **fields)]})

    # ---------------------------------------------
    # 履歴
    # ---------------------------------------------
    def get_history(self, user_id: str, limit: int = 10) -> List[HistoryEntry]:
        records = self._fetch(HISTORY_TABLE, {
            "Fields": _fields("Id", "calculation", "result", "timestamp"),
            "where": _owner("Owner", user_id),
            "orderBy": [{"field": "timestamp", "direction": "DESC"}],
            "pagingInfo": {"limit": limit, "offset": 0},
        })
        return [_to_entry(r) for r in records]

    def append_history(self, user_id: str, text: str, value: float) -> HistoryEntry:
        timestamp = now().isoformat()
        data = self._write(HISTORY_TABLE, "create", {"records": [{
            "Name": f"Calculation {timestamp}",
            "Owner": user_id,
            "calculation": text,
            "result": str(value),
            "timestamp": timestamp,
        }]})
        for result in data.get("results") or []:
            if result.get("success"):
                return _to_entry(result.get("data") or {})
        raise PersistenceError("failed to save calculation")

    def clear_history(self, user_id: str) -> bool:
        records = self._fetch(HISTORY_TABLE, {
            "Fields": _fields("Id"),
            "where": _owner("Owner", user_id),
        })
        if not records:
            return True
        self._write(HISTORY_TABLE, "delete", {"RecordIds": [r["Id"] for r in records]})
        return True

    # ---------------------------------------------
    # メモリ
    # ---------------------------------------------
    def get_memory(self, user_id: str) -> float:
        records = self._fetch(MEMORY_TABLE, {
            "Fields": _fields("Id", "value"),
            "where": _owner("user_id", user_id),
            "pagingInfo": {"limit": 1, "offset": 0},
        })
        if not records:
            return 0.0
        try:
            return float(records[0].get("value"))
        except (TypeError, ValueError):
            return 0.0

    def set_memory(self, user_id: str, value: float) -> bool:
        self._upsert(MEMORY_TABLE, user_id, {"value": str(value)}, f"Memory for {user_id}")
        return True

    # ---------------------------------------------
    # 設定
    # ---------------------------------------------
    def get_settings(self, user_id: str) -> Optional[Settings]:
        records = self._fetch(SETTINGS_TABLE, {
            "Fields": _fields("Id", "scientific_mode", "angle_mode", "dark_mode"),
            "where": _owner("user_id", user_id),
            "pagingInfo": {"limit": 1, "offset": 0},
        })
        if not records:
            return None
        return Settings.from_record(records[0])

    def set_settings(self, user_id: str, settings: Settings) -> bool:
        self._upsert(SETTINGS_TABLE, user_id, settings.to_record(), f"Calculator Settings for {user_id}")
        return True
