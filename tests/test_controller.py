"""
Controller tests
================
Local commit first, then mirroring to the store.
"""

from scicalc.auth import AuthSession, User
from scicalc.controller import ERROR, INFO, SIGN_IN_NOTICE, SUCCESS, CalculatorController
from scicalc.evaluator import RADIANS
from scicalc.history import HistoryEntry, now
from scicalc.mirror import Mirror
from scicalc.settings import Settings, default_settings
from scicalc.state import SCIENTIFIC
from scicalc.storage import LOCAL_USER


# ============================================================
# Loading
# ============================================================

class TestLoad:

    def test_defaults_when_nothing_saved(self, store):
        c = CalculatorController(store, mirror=Mirror(background=False), prefers_dark=True)
        c.load()
        assert c.loaded
        assert c.settings == Settings(dark_mode=True)
        assert c.state.memory == 0
        assert c.history.entries == []

    def test_saved_values_are_applied(self, store):
        store.settings[LOCAL_USER] = Settings(scientific_mode=True, angle_unit=RADIANS)
        store.memory[LOCAL_USER] = 8.0
        store.history[LOCAL_USER] = [HistoryEntry("1 + 1 = 2", 2.0, now())]
        c = CalculatorController(store, mirror=Mirror(background=False))
        c.load()
        assert c.state.mode == SCIENTIFIC
        assert c.state.angle_unit == RADIANS
        assert c.state.memory == 8
        assert [e.calculation for e in c.history] == ["1 + 1 = 2"]

    def test_load_failures_fall_back_to_defaults(self, store):
        store.fail = True
        c = CalculatorController(store, mirror=Mirror(background=False), prefers_dark=True)
        c.load()
        assert c.settings == Settings(dark_mode=True)
        assert c.state.memory == 0
        assert c.loaded

    def test_remote_without_user_skips_store(self, store):
        c = CalculatorController(store, auth=AuthSession(), remote=True, mirror=Mirror(background=False))
        c.load()
        assert store.calls == []


# ============================================================
# Calculations
# ============================================================

class TestPress:

    def test_equals_records_and_mirrors(self, controller, store, press_all):
        s = press_all(controller, ["7", "+", "3", "="])
        assert s.display == "10"
        assert controller.history.entries[0].calculation == "7 + 3 = 10"
        assert ("append_history", LOCAL_USER, "7 + 3 = 10", 10.0) in store.calls

    def test_sqrt_scenario(self, controller, press_all):
        s = press_all(controller, ["1", "6", "sqrt"])
        assert s.display == "4"
        assert controller.history.entries[0].calculation == "√(16) = 4"

    def test_local_history_capped(self, controller, press_all):
        for _ in range(11):
            press_all(controller, ["1", "+", "1", "="])
        assert len(controller.history) == 10

    def test_mirror_failure_keeps_local_state(self, controller, store, notices, press_all):
        store.fail = True
        s = press_all(controller, ["2", "×", "4", "="])
        assert s.display == "8"
        assert len(controller.history) == 1
        assert ERROR not in notices.kinds()

    def test_error_is_announced(self, controller, notices, press_all):
        s = press_all(controller, ["1", "÷", "0", "="])
        assert s.is_error
        assert notices[-1][0] == ERROR

    def test_constant_is_announced(self, controller, notices, press_all):
        s = press_all(controller, ["SCI", "π"])
        assert s.display.startswith("3.14159")
        assert notices[-1] == (INFO, "Inserted constant: π")


class TestMemory:

    def test_memory_scenario(self, controller, store, press_all):
        s = press_all(controller, ["5", "M+", "MC", "MR"])
        assert s.display == "0"
        assert ("set_memory", LOCAL_USER, 5.0) in store.calls
        assert store.memory[LOCAL_USER] == 0

    def test_memory_recall_does_not_write(self, controller, store, press_all):
        press_all(controller, ["MR"])
        assert not [c for c in store.calls if c[0] == "set_memory"]

    def test_remote_memory_requires_user(self, store, notices, press_all):
        c = CalculatorController(store, auth=AuthSession(), remote=True,
                                 mirror=Mirror(background=False), notify=notices)
        c.load()
        s = press_all(c, ["5", "M+"])
        assert s.memory == 0
        assert s.display == "5"
        assert notices[-1] == (ERROR, SIGN_IN_NOTICE)

    def test_remote_memory_with_user(self, remote_controller, store, press_all):
        press_all(remote_controller, ["5", "MS"])
        assert store.memory["user-1"] == 5


# ============================================================
# Settings
# ============================================================

class TestSettings:

    def test_mode_toggles_save_settings(self, controller, store, press_all):
        press_all(controller, ["SCI", "DEG"])
        assert controller.settings.scientific_mode is True
        assert controller.settings.angle_unit == RADIANS
        assert store.settings[LOCAL_USER] == controller.settings

    def test_shift_does_not_touch_settings(self, controller, store, press_all):
        press_all(controller, ["SHIFT"])
        assert LOCAL_USER not in store.settings

    def test_toggle_dark_mode(self, controller, store, notices):
        settings = controller.toggle_dark_mode()
        assert settings.dark_mode is True
        assert store.settings[LOCAL_USER].dark_mode is True
        assert notices[-1] == (INFO, "Switched to dark mode")


# ============================================================
# History actions
# ============================================================

class TestHistoryActions:

    def test_recall(self, controller, press_all):
        press_all(controller, ["7", "+", "3", "="])
        entry = controller.history.entries[0]
        press_all(controller, ["2", "×"])
        s = controller.recall(entry)
        assert s.display == "10"
        assert s.pending_operator is None
        assert controller.press("=").display == "10"

    def test_clear_history(self, controller, store, notices, press_all):
        press_all(controller, ["7", "+", "3", "="])
        assert controller.clear_history() is True
        assert controller.history.entries == []
        assert store.history[LOCAL_USER] == []
        assert notices[-1] == (SUCCESS, "History cleared")

    def test_clear_history_failure_is_reported(self, controller, store, notices):
        store.fail = True
        controller.clear_history()
        assert notices[-1][0] == ERROR
        assert "Failed to clear history" in notices[-1][1]

    def test_remote_history_requires_user(self, store, notices):
        c = CalculatorController(store, auth=AuthSession(), remote=True,
                                 mirror=Mirror(background=False), notify=notices)
        c.load()
        c.history.record("1 + 1 = 2", 2)
        assert c.clear_history() is False
        assert len(c.history) == 1
        entry = c.history.entries[0]
        assert c.recall(entry).display == "0"
        assert notices.kinds() == [ERROR, ERROR]

    def test_remote_history_is_unbounded_but_paged(self, remote_controller, press_all):
        for _ in range(12):
            press_all(remote_controller, ["1", "+", "1", "="])
        assert len(remote_controller.history) == 12
        assert len(remote_controller.visible_history()) == 10

    def test_logout_stops_mirroring(self, store, notices, press_all):
        auth = AuthSession(User("user-1"))
        c = CalculatorController(store, auth=auth, remote=True,
                                 mirror=Mirror(background=False), notify=notices)
        c.load()
        c.logout()
        press_all(c, ["2", "+", "2", "="])
        assert len(c.history) == 1
        assert not [call for call in store.calls if call[0] == "append_history"]

    def test_logout_forgets_previous_user(self, remote_controller, press_all):
        press_all(remote_controller, ["5", "M+", "AC", "2", "+", "2", "="])
        remote_controller.toggle_dark_mode()
        remote_controller.logout()
        assert remote_controller.state.memory == 0
        assert remote_controller.state.display == "0"
        assert remote_controller.visible_history() == []
        assert remote_controller.settings == default_settings(False)
