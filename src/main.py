# 使用fletバージョン：0.28.3

import flet as ft

from scicalc.app import main

ft.app(main)
