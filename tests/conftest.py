import pytest

from scicalc.auth import AuthSession, User
from scicalc.controller import CalculatorController
from scicalc.errors import PersistenceError
from scicalc.history import HistoryEntry, now
from scicalc.mirror import Mirror
from scicalc.state import press
from scicalc.storage import LocalStore


class FakeStore:
    """メモリ上の保存先。fail=True で全ての呼び出しが失敗する"""

    def __init__(self):
        self.history = {}
        self.memory = {}
        self.settings = {}
        self.calls = []
        self.fail = False

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail:
            raise PersistenceError(f"{name} failed")

    def get_history(self, user_id, limit=10):
        self._call("get_history", user_id, limit)
        return list(self.history.get(user_id, []))[:limit]

    def append_history(self, user_id, text, value):
        self._call("append_history", user_id, text, value)
        entry = HistoryEntry(text, value, now())
        self.history.setdefault(user_id, []).insert(0, entry)
        return entry

    def clear_history(self, user_id):
        self._call("clear_history", user_id)
        self.history[user_id] = []
        return True

    def get_memory(self, user_id):
        self._call("get_memory", user_id)
        return self.memory.get(user_id, 0.0)

    def set_memory(self, user_id, value):
        self._call("set_memory", user_id, value)
        self.memory[user_id] = value
        return True

    def get_settings(self, user_id):
        self._call("get_settings", user_id)
        return self.settings.get(user_id)

    def set_settings(self, user_id, settings):
        self._call("set_settings", user_id, settings)
        self.settings[user_id] = settings
        return True


class Notices(list):
    def __call__(self, kind, message):
        self.append((kind, message))

    def kinds(self):
        return [kind for kind, _ in self]


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notices():
    return Notices()


@pytest.fixture
def controller(store, notices):
    """ローカル保存モードのコントローラ（書き込みはその場で実行）"""
    c = CalculatorController(store, mirror=Mirror(background=False), notify=notices)
    c.load()
    return c


@pytest.fixture
def remote_controller(store, notices):
    auth = AuthSession(User("user-1", "Alice"))
    c = CalculatorController(store, auth=auth, remote=True,
                             mirror=Mirror(background=False), notify=notices)
    c.load()
    return c


@pytest.fixture
def local_store(tmp_path):
    s = LocalStore(str(tmp_path / "calc.db"))
    s.init()
    return s


def _press_all(controller_or_state, keys):
    if hasattr(controller_or_state, "press"):
        for key in keys:
            controller_or_state.press(key)
        return controller_or_state.state
    state = controller_or_state
    records = []
    for key in keys:
        step = press(state, key)
        state = step.state
        if step.record:
            records.append(step.record)
    return state, records


@pytest.fixture
def press_all():
    """キー列を順に入力する。状態を渡したときは (状態, 履歴レコード一覧) を返す"""
    return _press_all
