import logging
from dataclasses import replace
from typing import Callable, Optional

from scicalc import state as calc
from scicalc.auth import AuthSession
from scicalc.errors import AuthRequiredError, PersistenceError
from scicalc.evaluator import DEGREES, format_number
from scicalc.history import LOCAL_CAPACITY, HistoryEntry, HistoryLog
from scicalc.mirror import Mirror
from scicalc.settings import Settings, default_settings
from scicalc.storage import LOCAL_USER

logger = logging.getLogger(__name__)

INFO = "info"
SUCCESS = "success"
ERROR = "error"

SIGN_IN_NOTICE = "Sign in to use memory and history"


def _log_notice(kind: str, message: str):
    logger.info("[%s] %s", kind, message)


class CalculatorController:
    """電卓の状態・履歴・設定をまとめて持ち、変更を保存先へ反映する。

    入力はまずローカルの状態に反映し、保存先への書き込みは Mirror に任せる。
    """

    def __init__(self, store, auth: Optional[AuthSession] = None, remote: bool = False,
                 mirror: Optional[Mirror] = None, notify: Optional[Callable[[str, str], None]] = None,
                 history_limit: int = LOCAL_CAPACITY, prefers_dark: bool = False):
        self.store = store
        self.auth = auth or AuthSession()
        self.remote = remote
        self.mirror = mirror or Mirror()
        self.notify = notify or _log_notice
        self.history_limit = history_limit
        self.state = calc.CalculatorState()
        self.history = HistoryLog(capacity=None if remote else LOCAL_CAPACITY)
        self.settings = default_settings(prefers_dark)
        self.prefers_dark = prefers_dark
        self.loaded = False

    # ---------------------------------------------
    # 保存先のユーザー
    # ---------------------------------------------
    @property
    def owner(self) -> Optional[str]:
        if not self.remote:
            return LOCAL_USER
        return self.auth.user.user_id if self.auth.user else None

    def _require_owner(self) -> str:
        if not self.remote:
            return LOCAL_USER
        return self.auth.require_user().user_id

    def _mirror(self, label: str, fn, *args, on_error=None):
        owner = self.owner
        if owner is None:
            logger.debug("not signed in, %s kept local only", label)
            return
        self.mirror.submit(label, fn, owner, *args, on_error=on_error)

    # ---------------------------------------------
    # 起動時の読み込み
    # ---------------------------------------------
    def load(self):
        """設定・メモリ・履歴を読み込む（画面の表示前に呼ぶ）"""
        owner = self.owner
        settings = default_settings(self.prefers_dark)
        memory = 0.0
        entries = []
        if owner is not None:
            try:
                settings = self.store.get_settings(owner) or settings
            except PersistenceError:
                logger.error("failed to load settings, using defaults", exc_info=True)
            try:
                memory = self.store.get_memory(owner)
            except PersistenceError:
                logger.error("failed to load memory value", exc_info=True)
            try:
                entries = self.store.get_history(owner, self.history_limit)
            except PersistenceError:
                logger.error("failed to load calculation history", exc_info=True)

        self.settings = settings
        self.history.replace(entries)
        self.state = replace(
            self.state,
            memory=memory,
            angle_unit=settings.angle_unit,
            mode=calc.SCIENTIFIC if settings.scientific_mode else calc.BASIC,
        )
        self.loaded = True
        return self.state

    # ---------------------------------------------
    # ボタン入力
    # ---------------------------------------------
    def press(self, key: str) -> calc.CalculatorState:
        if key in calc.MEMORY_KEYS:
            try:
                self._require_owner()
            except AuthRequiredError:
                self.notify(ERROR, SIGN_IN_NOTICE)
                return self.state

        before = self.state
        step = calc.press(before, key)
        self.state = step.state

        if step.record is not None:
            text, value = step.record
            self.history.record(text, value)
            self._mirror("history append", self.store.append_history, text, value)

        if self.state.memory != before.memory:
            self._mirror("memory save", self.store.set_memory, self.state.memory)

        if self.state.mode != before.mode or self.state.angle_unit != before.angle_unit:
            self._update_settings(
                scientific_mode=self.state.scientific,
                angle_unit=self.state.angle_unit,
            )

        self._announce(key, before)
        return self.state

    def _announce(self, key: str, before: calc.CalculatorState):
        s = self.state
        if s.is_error and not before.is_error:
            self.notify(ERROR, "Error: result is not a finite number")
        elif key == "AC":
            self.notify(INFO, "Calculator cleared")
        elif key == "M+" and not s.is_error:
            self.notify(INFO, f"Added {format_number(before.value)} to memory")
        elif key == "M-" and not s.is_error:
            self.notify(INFO, f"Subtracted {format_number(before.value)} from memory")
        elif key == "MS" and not s.is_error:
            self.notify(INFO, f"Stored {format_number(s.memory)} in memory")
        elif key in calc.CONSTANTS:
            self.notify(INFO, f"Inserted constant: {key}")
        elif key == "MR":
            self.notify(INFO, f"Recalled memory value: {format_number(s.memory)}")
        elif key == "MC":
            self.notify(INFO, "Memory cleared")
        elif key == "SCI":
            self.notify(INFO, f"Switched to {s.mode} calculator")
        elif key in ("DEG", "RAD"):
            self.notify(INFO, f"Switched to {s.angle_unit}")
        elif key in ("SHIFT", "INV"):
            self.notify(INFO, f"{'Inverse' if s.inverse_shift else 'Regular'} functions activated")

    # ---------------------------------------------
    # 履歴
    # ---------------------------------------------
    def visible_history(self):
        return self.history.page(self.history_limit)

    def recall(self, entry: HistoryEntry) -> calc.CalculatorState:
        try:
            self._require_owner()
        except AuthRequiredError:
            self.notify(ERROR, SIGN_IN_NOTICE)
            return self.state
        self.state = calc.recall(self.state, entry.result).state
        self.notify(INFO, "Value recalled from history")
        return self.state

    def clear_history(self) -> bool:
        try:
            self._require_owner()
        except AuthRequiredError:
            self.notify(ERROR, SIGN_IN_NOTICE)
            return False
        self.history.clear()
        self.notify(SUCCESS, "History cleared")

        def failed(exc):
            self.notify(ERROR, f"Failed to clear history: {exc}")

        self._mirror("history clear", self.store.clear_history, on_error=failed)
        return True

    # ---------------------------------------------
    # 設定
    # ---------------------------------------------
    def _update_settings(self, **changes):
        self.settings = self.settings.with_changes(**changes)
        self._mirror("settings save", self.store.set_settings, self.settings)

    def toggle_dark_mode(self) -> Settings:
        self._update_settings(dark_mode=not self.settings.dark_mode)
        self.notify(INFO, "Switched to dark mode" if self.settings.dark_mode else "Switched to light mode")
        return self.settings

    @property
    def degrees(self) -> bool:
        return self.state.angle_unit == DEGREES

    def logout(self):
        """ログアウトしたら前のユーザーのメモリ・履歴・設定を画面から消す"""
        self.auth.logout()
        self.history.clear()
        self.settings = default_settings(self.prefers_dark)
        self.state = calc.CalculatorState()
        self.notify(INFO, "Signed out")
