import math

from scicalc.errors import MathDomainError

DEGREES = "degrees"
RADIANS = "radians"

# 二項演算子（キーボード入力の * / は × ÷ として扱う）
BINARY_OPERATORS = ("+", "-", "×", "÷", "%", "^")
OPERATOR_ALIASES = {"*": "×", "/": "÷"}

UNARY_FUNCTIONS = (
    "sqrt", "square", "cube", "reciprocal", "exp", "ln",
    "sin", "cos", "tan", "log10", "log2",
)
TRIG_FUNCTIONS = ("sin", "cos", "tan")


def normalize_operator(op: str) -> str:
    return OPERATOR_ALIASES.get(op, op)


def _divide(a: float, b: float) -> float:
    if b == 0:
        # IEEE の挙動に合わせる（0/0 は nan、それ以外は符号つき無限大）
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _power(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except (ValueError, ZeroDivisionError):
        # math.pow(0, -1) は ValueError、負数の分数乗も ValueError
        if a == 0 and b < 0:
            return math.inf
        return math.nan


def evaluate(operator: str, a: float, b: float) -> float:
    """二項演算を計算する。結果は nan / inf になることもある（例外は出さない）"""
    operator = normalize_operator(operator)
    a = float(a)
    b = float(b)
    if operator == "+":
        return a + b
    elif operator == "-":
        return a - b
    elif operator == "×":
        return a * b
    elif operator == "÷":
        return _divide(a, b)
    elif operator == "%":
        # 剰余ではなく「a の b パーセント」
        return (a * b) / 100
    elif operator == "^":
        return _power(a, b)
    # 未知の演算子は右辺をそのまま返す
    return b


def _apply(func, x: float) -> float:
    try:
        return func(x)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def _ln(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log(x)


def _log10(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log10(x)


def _log2(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log2(x)


_UNARY = {
    "sqrt": math.sqrt,
    "square": lambda x: math.pow(x, 2),
    "cube": lambda x: math.pow(x, 3),
    "reciprocal": lambda x: _divide(1.0, x),
    "exp": math.exp,
    "ln": _ln,
    "log10": _log10,
    "log2": _log2,
}

_TRIG = {"sin": math.sin, "cos": math.cos, "tan": math.tan}
_INVERSE_TRIG = {"sin": math.asin, "cos": math.acos, "tan": math.atan}


def evaluate_unary(fn: str, x: float, angle_unit: str = DEGREES, inverse: bool = False) -> float:
    """単項関数を計算する。

    三角関数は度数法なら入力をラジアンに変換してから計算する。
    逆三角関数（inverse=True）は入力をそのまま使い、結果もラジアンのまま返す。
    """
    x = float(x)
    if fn in TRIG_FUNCTIONS:
        if inverse:
            return _apply(_INVERSE_TRIG[fn], x)
        rad = x * (math.pi / 180) if angle_unit == DEGREES else x
        return _apply(_TRIG[fn], rad)
    if fn not in _UNARY:
        raise KeyError(f"unknown function: {fn}")
    return _apply(_UNARY[fn], x)


def ensure_finite(value: float) -> float:
    if math.isnan(value) or math.isinf(value):
        raise MathDomainError(value)
    return value


def format_number(num) -> str:
    # 整数なら小数点なし、そうでなければ有効数字12桁で丸める
    num = float(num)
    if num.is_integer() and abs(num) < 1e16:
        return str(int(num))
    return f"{num:.12g}"


def describe_binary(operator: str, a: float, b: float, result: float) -> str:
    return f"{format_number(a)} {normalize_operator(operator)} {format_number(b)} = {format_number(result)}"


def describe_unary(fn: str, x: float, result: float, angle_unit: str = DEGREES, inverse: bool = False) -> str:
    """履歴に表示する計算式の文字列"""
    xs = format_number(x)
    rs = format_number(result)
    if fn in TRIG_FUNCTIONS:
        if inverse:
            return f"a{fn}({xs}) = {rs}"
        unit = "°" if angle_unit == DEGREES else " rad"
        return f"{fn}({xs}{unit}) = {rs}"
    templates = {
        "sqrt": "√({x}) = {r}",
        "square": "{x}² = {r}",
        "cube": "{x}³ = {r}",
        "reciprocal": "1/{x} = {r}",
        "exp": "e^{x} = {r}",
        "ln": "ln({x}) = {r}",
        "log10": "log₁₀({x}) = {r}",
        "log2": "log₂({x}) = {r}",
    }
    return templates[fn].format(x=xs, r=rs)
