import logging
from typing import Optional

import flet as ft

from scicalc.auth import AuthSession, User
from scicalc.config import configure_logging, load_config
from scicalc.controller import ERROR, SIGN_IN_NOTICE, SUCCESS, CalculatorController
from scicalc.errors import PersistenceError
from scicalc.evaluator import DEGREES, format_number
from scicalc.mirror import Mirror
from scicalc.remote import RemoteStore
from scicalc.storage import LocalStore

logger = logging.getLogger(__name__)


class CalcButton(ft.ElevatedButton):
    def __init__(self, text, button_clicked, expand=1, data=None):
        super().__init__()
        self.text = text
        self.expand = expand
        self.on_click = button_clicked
        self.data = data or text


class DigitButton(CalcButton):
    def __init__(self, text, button_clicked, expand=1):
        CalcButton.__init__(self, text, button_clicked, expand)
        self.bgcolor = ft.Colors.WHITE24
        self.color = ft.Colors.WHITE


class ActionButton(CalcButton):
    def __init__(self, text, button_clicked, data=None):
        CalcButton.__init__(self, text, button_clicked, data=data)
        self.bgcolor = ft.Colors.ORANGE
        self.color = ft.Colors.WHITE


class ExtraActionButton(CalcButton):
    def __init__(self, text, button_clicked, data=None):
        CalcButton.__init__(self, text, button_clicked, data=data)
        self.bgcolor = ft.Colors.BLUE_GREY_100
        self.color = ft.Colors.BLACK


class MemoryButton(CalcButton):
    def __init__(self, text, button_clicked):
        CalcButton.__init__(self, text, button_clicked)
        self.bgcolor = ft.Colors.TEAL_700
        self.color = ft.Colors.WHITE


# ---------------------------------------------
# キーボード入力 → ボタン
# ---------------------------------------------
SHIFTED_KEYS = {"=": "+", "8": "×", "5": "%", "6": "^"}
NAMED_KEYS = {
    "Enter": "=",
    "Numpad Enter": "=",
    "=": "=",
    "Backspace": "CE",
    "Delete": "CE",
    "Escape": "AC",
    "+": "+",
    "-": "-",
    "*": "×",
    "/": "÷",
    "^": "^",
    "%": "%",
    ".": ".",
    "Numpad Add": "+",
    "Numpad Subtract": "-",
    "Numpad Multiply": "×",
    "Numpad Divide": "÷",
    "Numpad Decimal": ".",
}


def key_to_button(key: str, shift: bool = False) -> Optional[str]:
    if shift and key in SHIFTED_KEYS:
        return SHIFTED_KEYS[key]
    if key.startswith("Numpad ") and key[-1:].isdigit():
        return key[-1]
    if len(key) == 1 and key.isdigit():
        return key
    return NAMED_KEYS.get(key)


class CalculatorApp(ft.Container):
    def __init__(self, controller: CalculatorController):
        super().__init__()
        self.controller = controller
        self.width = 460
        self.bgcolor = ft.Colors.BLACK
        self.border_radius = ft.border_radius.all(20)
        self.padding = 20

        self.result = ft.Text(value="0", color=ft.Colors.WHITE, size=28)
        self.expression = ft.Text(value="", color=ft.Colors.WHITE54, size=14)
        self.memory_flag = ft.Text(value="", color=ft.Colors.TEAL_200, size=14, weight=ft.FontWeight.BOLD)

        self.history_button = ft.IconButton(icon=ft.Icons.HISTORY, icon_color=ft.Colors.WHITE,
                                            on_click=self.toggle_history)
        self.theme_button = ft.IconButton(icon=ft.Icons.DARK_MODE, icon_color=ft.Colors.WHITE,
                                          on_click=self.toggle_dark_mode)
        self.logout_button = ft.IconButton(icon=ft.Icons.LOGOUT, icon_color=ft.Colors.WHITE,
                                           on_click=self.logout, visible=False)

        # --- 表示行 ---
        self.row_header = ft.Row(
            controls=[self.memory_flag, ft.Container(expand=True),
                      self.history_button, self.theme_button, self.logout_button],
        )
        self.row_display = ft.Column(
            controls=[ft.Row(controls=[self.expression], alignment="end"),
                      ft.Row(controls=[self.result], alignment="end")],
            spacing=2,
        )

        # --- 基本ボタン行 ---
        self.row_memory = ft.Row(
            controls=[MemoryButton(text=k, button_clicked=self.button_clicked)
                      for k in ("MC", "MR", "M+", "M-", "MS")]
        )
        self.row_top = ft.Row(
            controls=[
                ExtraActionButton(text="AC", button_clicked=self.button_clicked),
                ExtraActionButton(text="CE", button_clicked=self.button_clicked),
                ExtraActionButton(text="%", button_clicked=self.button_clicked),
                ActionButton(text="÷", button_clicked=self.button_clicked),
                ExtraActionButton(text="SCI", button_clicked=self.button_clicked),
            ]
        )
        self.row_7_9 = ft.Row(
            controls=[
                DigitButton(text="7", button_clicked=self.button_clicked),
                DigitButton(text="8", button_clicked=self.button_clicked),
                DigitButton(text="9", button_clicked=self.button_clicked),
                ActionButton(text="×", button_clicked=self.button_clicked),
                ActionButton(text="^", button_clicked=self.button_clicked),
            ]
        )
        self.row_4_6 = ft.Row(
            controls=[
                DigitButton(text="4", button_clicked=self.button_clicked),
                DigitButton(text="5", button_clicked=self.button_clicked),
                DigitButton(text="6", button_clicked=self.button_clicked),
                ActionButton(text="-", button_clicked=self.button_clicked),
                ExtraActionButton(text="+/-", button_clicked=self.button_clicked),
            ]
        )
        self.row_1_3 = ft.Row(
            controls=[
                DigitButton(text="1", button_clicked=self.button_clicked),
                DigitButton(text="2", button_clicked=self.button_clicked),
                DigitButton(text="3", button_clicked=self.button_clicked),
                ActionButton(text="+", button_clicked=self.button_clicked),
            ]
        )
        self.row_0_dot_eq = ft.Row(
            controls=[
                DigitButton(text="0", expand=2, button_clicked=self.button_clicked),
                DigitButton(text=".", button_clicked=self.button_clicked),
                ActionButton(text="=", button_clicked=self.button_clicked),
            ]
        )

        # --- 科学計算ボタン行（SCI トグルで挿入/削除） ---
        self.angle_button = ExtraActionButton(text="DEG", button_clicked=self.button_clicked)
        self.shift_button = ExtraActionButton(text="SHIFT", button_clicked=self.button_clicked)
        self.trig_buttons = [
            ExtraActionButton(text=fn, button_clicked=self.button_clicked) for fn in ("sin", "cos", "tan")
        ]
        self.sci_row1 = ft.Row(
            controls=[
                self.angle_button,
                self.shift_button,
                ExtraActionButton(text="π", button_clicked=self.button_clicked),
                ExtraActionButton(text="e", button_clicked=self.button_clicked),
            ]
        )
        self.sci_row2 = ft.Row(
            controls=self.trig_buttons + [
                ExtraActionButton(text="log₁₀", button_clicked=self.button_clicked, data="log10"),
                ExtraActionButton(text="log₂", button_clicked=self.button_clicked, data="log2"),
            ]
        )
        self.sci_row3 = ft.Row(
            controls=[
                ExtraActionButton(text="√", button_clicked=self.button_clicked, data="sqrt"),
                ExtraActionButton(text="x²", button_clicked=self.button_clicked, data="square"),
                ExtraActionButton(text="x³", button_clicked=self.button_clicked, data="cube"),
                ExtraActionButton(text="1/x", button_clicked=self.button_clicked, data="reciprocal"),
                ExtraActionButton(text="ln", button_clicked=self.button_clicked),
                ExtraActionButton(text="eˣ", button_clicked=self.button_clicked, data="exp"),
            ]
        )
        self.sci_rows = [self.sci_row1, self.sci_row2, self.sci_row3]

        # --- 履歴パネル ---
        self.history_list = ft.ListView(spacing=2, height=220)
        self.history_panel = ft.Container(
            visible=False,
            bgcolor=ft.Colors.with_opacity(0.08, ft.Colors.WHITE),
            border_radius=12,
            padding=8,
            content=ft.Column(controls=[
                ft.Row(controls=[
                    ft.Text("History", color=ft.Colors.WHITE, weight=ft.FontWeight.BOLD),
                    ft.Container(expand=True),
                    ft.IconButton(icon=ft.Icons.DELETE_OUTLINE, icon_color=ft.Colors.WHITE,
                                  on_click=self.clear_history),
                ]),
                self.history_list,
            ]),
        )

        # 最初は通常行のみ
        self.content = ft.Column(
            controls=[
                self.row_header,
                self.row_display,
                self.row_memory,
                self.row_top,
                self.row_7_9,
                self.row_4_6,
                self.row_1_3,
                self.row_0_dot_eq,
                self.history_panel,
            ]
        )
        self.sync()

    # ---------------------------------------------
    # 状態 → 画面
    # ---------------------------------------------
    def sync(self):
        """コントローラの状態を画面に反映する（update はしない）"""
        c = self.controller
        s = c.state
        self.result.value = s.display
        if s.pending_operator is not None and s.pending_operand is not None:
            self.expression.value = f"{format_number(s.pending_operand)} {s.pending_operator}"
        else:
            self.expression.value = ""
        self.memory_flag.value = "M" if s.memory != 0 else ""

        self.angle_button.text = "DEG" if s.angle_unit == DEGREES else "RAD"
        self.shift_button.text = "INV" if s.inverse_shift else "SHIFT"
        for button in self.trig_buttons:
            button.text = f"a{button.data}" if s.inverse_shift else button.data

        controls = self.content.controls
        if s.scientific:
            # 表示行の直後に挿入して順序を守る
            for i, row in enumerate(self.sci_rows):
                if row not in controls:
                    controls.insert(2 + i, row)
        else:
            for row in self.sci_rows:
                if row in controls:
                    controls.remove(row)

        self.theme_button.icon = ft.Icons.LIGHT_MODE if c.settings.dark_mode else ft.Icons.DARK_MODE
        self.logout_button.visible = c.remote and c.auth.authenticated
        self.sync_history()

    def sync_history(self):
        self.history_list.controls = [
            ft.ListTile(
                title=ft.Text(entry.calculation, color=ft.Colors.WHITE),
                subtitle=ft.Text(entry.timestamp.astimezone().strftime("%H:%M:%S"), color=ft.Colors.WHITE54),
                on_click=lambda e, entry=entry: self.recall(entry),
                dense=True,
            )
            for entry in self.controller.visible_history()
        ]

    def refresh(self):
        self.sync()
        self.update()

    # ---------------------------------------------
    # イベント
    # ---------------------------------------------
    def button_clicked(self, e):
        self.press(e.control.data)

    def press(self, key: str):
        logger.debug("button %s", key)
        self.controller.press(key)
        self.refresh()

    def on_keyboard(self, e: ft.KeyboardEvent):
        key = key_to_button(e.key, e.shift)
        if key is not None:
            self.press(key)

    def recall(self, entry):
        self.controller.recall(entry)
        self.refresh()

    def toggle_history(self, e):
        self.history_panel.visible = not self.history_panel.visible
        self.refresh()

    def clear_history(self, e):
        self.controller.clear_history()
        self.refresh()

    def toggle_dark_mode(self, e):
        settings = self.controller.toggle_dark_mode()
        apply_theme(self.page, settings.dark_mode)
        self.refresh()

    def logout(self, e):
        self.controller.logout()
        apply_theme(self.page, self.controller.settings.dark_mode)
        self.refresh()


# ---------------------------------------------
# ローディング・通知
# ---------------------------------------------
def show_loading(page: ft.Page):
    page.overlay.clear()
    page.overlay.append(
        ft.Container(
            content=ft.Column(controls=[ft.ProgressRing(color=ft.Colors.WHITE)],
                              alignment=ft.MainAxisAlignment.CENTER,
                              horizontal_alignment=ft.CrossAxisAlignment.CENTER),
            bgcolor=ft.Colors.with_opacity(0.18, ft.Colors.BLACK),
            alignment=ft.alignment.center,
            expand=True,
        )
    )
    page.update()


def hide_loading(page: ft.Page):
    page.overlay.clear()
    page.update()


NOTICE_COLORS = {
    ERROR: ft.Colors.RED_700,
    SUCCESS: ft.Colors.GREEN_700,
}


def make_notifier(page: ft.Page):
    def notify(kind: str, message: str):
        logger.info("[%s] %s", kind, message)
        page.open(ft.SnackBar(ft.Text(message), bgcolor=NOTICE_COLORS.get(kind)))
    return notify


def apply_theme(page: ft.Page, dark_mode: bool):
    page.theme_mode = ft.ThemeMode.DARK if dark_mode else ft.ThemeMode.LIGHT
    page.update()


def build_store(config):
    if config.remote:
        return RemoteStore(config.remote_url, config.project_id, config.public_key)
    store = LocalStore(config.db_path)
    try:
        store.init()
    except PersistenceError:
        logger.error("cannot initialise %s, running without saved data", config.db_path, exc_info=True)
    return store


# ---------------------------------------------
# メイン
# ---------------------------------------------
def main(page: ft.Page):
    config = load_config()
    configure_logging(config.log_level)

    page.title = "Scientific Calculator"
    page.horizontal_alignment = ft.CrossAxisAlignment.CENTER
    page.padding = 20

    user = User(config.user_id, config.user_name) if config.user_id else None
    auth = AuthSession(user)
    notify = make_notifier(page)

    def on_auth_change(current):
        if config.remote and current is None:
            notify(ERROR, SIGN_IN_NOTICE)

    controller = CalculatorController(
        build_store(config),
        auth=auth,
        remote=config.remote,
        mirror=Mirror(),
        notify=notify,
        history_limit=config.history_limit,
        prefers_dark=page.platform_brightness == ft.Brightness.DARK,
    )

    # 設定を読み込むまではローディング表示
    show_loading(page)
    auth.start(on_auth_change)
    controller.load()
    hide_loading(page)

    apply_theme(page, controller.settings.dark_mode)
    calc = CalculatorApp(controller)
    page.on_keyboard_event = calc.on_keyboard
    page.add(calc)


def run():
    ft.app(main)
