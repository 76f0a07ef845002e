# ---------------------------------------------
# エラー分類
# ---------------------------------------------


class CalculatorError(Exception):
    """電卓アプリの例外の基底クラス"""


class MathDomainError(CalculatorError):
    """計算結果が有限の数値にならなかった（0除算・定義域外・オーバーフロー）"""

    def __init__(self, value: float):
        super().__init__(f"non-finite result: {value}")
        self.value = value


class PersistenceError(CalculatorError):
    """保存先（SQLite / リモート）の読み書きに失敗した"""


class AuthRequiredError(CalculatorError):
    """ログインしていないユーザーがメモリ・履歴操作を行おうとした"""
