"""電卓の状態遷移。

状態は不変の CalculatorState ひとつで、ボタン入力ごとに press() が新しい状態を返す。
計算が確定したときは履歴に追加する (計算式, 結果) も一緒に返す。
"""
import logging
import math
from dataclasses import dataclass, replace
from typing import NamedTuple, Optional, Tuple

from scicalc.errors import MathDomainError
from scicalc.evaluator import (
    BINARY_OPERATORS,
    DEGREES,
    OPERATOR_ALIASES,
    RADIANS,
    UNARY_FUNCTIONS,
    describe_binary,
    describe_unary,
    ensure_finite,
    evaluate,
    evaluate_unary,
    format_number,
    normalize_operator,
)

logger = logging.getLogger(__name__)

ERROR = "Error"
BASIC = "basic"
SCIENTIFIC = "scientific"

DIGITS = ("0", "1", "2", "3", "4", "5", "6", "7", "8", "9")
MEMORY_KEYS = ("M+", "M-", "MR", "MC", "MS")
CONSTANTS = {"π": math.pi, "e": math.e}


@dataclass(frozen=True)
class CalculatorState:
    display: str = "0"
    pending_operand: Optional[float] = None
    pending_operator: Optional[str] = None
    awaiting_new_operand: bool = False
    memory: float = 0.0
    angle_unit: str = DEGREES
    inverse_shift: bool = False
    mode: str = BASIC

    @property
    def is_error(self) -> bool:
        return self.display == ERROR

    @property
    def value(self) -> float:
        """表示中の数値（Error のときは 0）"""
        if self.is_error:
            return 0.0
        try:
            return float(self.display)
        except ValueError:
            return 0.0

    @property
    def scientific(self) -> bool:
        return self.mode == SCIENTIFIC


class Step(NamedTuple):
    state: CalculatorState
    record: Optional[Tuple[str, float]] = None


def _error(state: CalculatorState) -> Step:
    logger.debug("entering error state from display=%s", state.display)
    return Step(replace(
        state,
        display=ERROR,
        pending_operand=None,
        pending_operator=None,
        awaiting_new_operand=True,
    ))


# ---------------------------------------------
# 数字・小数点
# ---------------------------------------------
def input_digit(state: CalculatorState, digit: str) -> Step:
    if state.awaiting_new_operand or state.is_error:
        return Step(replace(state, display=digit, awaiting_new_operand=False))
    display = digit if state.display == "0" else state.display + digit
    if math.isinf(float(display)):
        # 桁が多すぎて有限の数値にならない入力は受け付けない
        return Step(state)
    return Step(replace(state, display=display))


def input_decimal(state: CalculatorState) -> Step:
    if state.awaiting_new_operand or state.is_error:
        return Step(replace(state, display="0.", awaiting_new_operand=False))
    if "." in state.display:
        return Step(state)
    return Step(replace(state, display=state.display + "."))


def toggle_sign(state: CalculatorState) -> Step:
    if state.is_error or state.value == 0:
        return Step(state)
    if state.display.startswith("-"):
        return Step(replace(state, display=state.display[1:]))
    return Step(replace(state, display="-" + state.display))


# ---------------------------------------------
# 二項演算子・イコール
# ---------------------------------------------
def set_operator(state: CalculatorState, operator: str) -> Step:
    operator = normalize_operator(operator)
    if state.is_error:
        return Step(state)

    current = state.value
    if state.pending_operand is None:
        return Step(replace(
            state,
            pending_operand=current,
            pending_operator=operator,
            awaiting_new_operand=True,
        ))

    if state.pending_operator is None:
        return Step(replace(state, pending_operator=operator, awaiting_new_operand=True))

    # 連続計算：保留中の計算を先に行う
    a = state.pending_operand
    try:
        result = ensure_finite(evaluate(state.pending_operator, a, current))
    except MathDomainError:
        return _error(state)
    text = describe_binary(state.pending_operator, a, current, result)
    return Step(replace(
        state,
        display=format_number(result),
        pending_operand=result,
        pending_operator=operator,
        awaiting_new_operand=True,
    ), (text, result))


def equals(state: CalculatorState) -> Step:
    if state.pending_operator is None or state.pending_operand is None:
        return Step(state)
    a = state.pending_operand
    b = state.value
    try:
        result = ensure_finite(evaluate(state.pending_operator, a, b))
    except MathDomainError:
        return _error(state)
    text = describe_binary(state.pending_operator, a, b, result)
    return Step(replace(
        state,
        display=format_number(result),
        pending_operand=None,
        pending_operator=None,
        awaiting_new_operand=True,
    ), (text, result))


# ---------------------------------------------
# クリア
# ---------------------------------------------
def clear_all(state: CalculatorState) -> Step:
    return Step(replace(
        state,
        display="0",
        pending_operand=None,
        pending_operator=None,
        awaiting_new_operand=False,
    ))


def clear_entry(state: CalculatorState) -> Step:
    if state.is_error:
        return clear_all(state)
    return Step(replace(state, display="0"))


# ---------------------------------------------
# 科学計算：単項関数
# ---------------------------------------------
def apply_function(state: CalculatorState, fn: str) -> Step:
    if state.is_error:
        return Step(state)
    x = state.value
    inverse = state.inverse_shift
    try:
        result = ensure_finite(evaluate_unary(fn, x, state.angle_unit, inverse))
    except MathDomainError:
        return _error(state)
    text = describe_unary(fn, x, result, state.angle_unit, inverse)
    return Step(
        replace(state, display=format_number(result), awaiting_new_operand=True),
        (text, result),
    )


def load_value(state: CalculatorState, value: float, reset_pending: bool = False) -> Step:
    """定数・メモリ・履歴の値を表示に読み込む"""
    try:
        value = ensure_finite(value)
    except MathDomainError:
        return _error(state)
    changes = dict(display=format_number(value), awaiting_new_operand=True)
    if reset_pending or state.is_error:
        changes.update(pending_operand=None, pending_operator=None)
    return Step(replace(state, **changes))


def recall(state: CalculatorState, value: float) -> Step:
    return load_value(state, value, reset_pending=True)


# ---------------------------------------------
# メモリ
# ---------------------------------------------
def memory(state: CalculatorState, key: str) -> Step:
    if key == "MR":
        return load_value(state, state.memory)
    if key == "MC":
        return Step(replace(state, memory=0.0))
    if state.is_error:
        return Step(state)
    if key == "M+":
        stored = state.memory + state.value
    elif key == "M-":
        stored = state.memory - state.value
    elif key == "MS":
        stored = state.value
    else:
        return Step(state)
    try:
        stored = ensure_finite(stored)
    except MathDomainError:
        return _error(state)
    return Step(replace(state, memory=stored))


# ---------------------------------------------
# モード切替（数値には影響しない）
# ---------------------------------------------
def toggle_mode(state: CalculatorState) -> Step:
    return Step(replace(state, mode=BASIC if state.scientific else SCIENTIFIC))


def toggle_angle_unit(state: CalculatorState) -> Step:
    return Step(replace(state, angle_unit=RADIANS if state.angle_unit == DEGREES else DEGREES))


def toggle_shift(state: CalculatorState) -> Step:
    return Step(replace(state, inverse_shift=not state.inverse_shift))


def press(state: CalculatorState, key: str) -> Step:
    """ボタン（またはキー）ひとつ分の入力を処理する"""
    if key in DIGITS:
        return input_digit(state, key)
    if key == ".":
        return input_decimal(state)
    if key in BINARY_OPERATORS or key in OPERATOR_ALIASES:
        return set_operator(state, key)
    if key == "=":
        return equals(state)
    if key == "AC":
        return clear_all(state)
    if key == "CE":
        return clear_entry(state)
    if key == "+/-":
        return toggle_sign(state)
    if key in UNARY_FUNCTIONS:
        return apply_function(state, key)
    if key in CONSTANTS:
        return load_value(state, CONSTANTS[key])
    if key in MEMORY_KEYS:
        return memory(state, key)
    if key in ("DEG", "RAD"):
        return toggle_angle_unit(state)
    if key in ("SHIFT", "INV"):
        return toggle_shift(state)
    if key == "SCI":
        return toggle_mode(state)
    # それ以外（未知のボタン）
    return Step(state)
