"""Flet 製の関数電卓（履歴・メモリ・設定の保存つき）"""

__version__ = "0.3.0"
