"""
Keyboard mapping tests
======================
"""

import pytest

from scicalc.app import key_to_button


@pytest.mark.parametrize("key, shift, expected", [
    ("7", False, "7"),
    ("Numpad 3", False, "3"),
    ("Enter", False, "="),
    ("=", False, "="),
    ("=", True, "+"),
    ("8", True, "×"),
    ("/", False, "÷"),
    ("Numpad Multiply", False, "×"),
    ("Backspace", False, "CE"),
    ("Escape", False, "AC"),
    ("A", False, None),
])
def test_key_to_button(key, shift, expected):
    assert key_to_button(key, shift) == expected
