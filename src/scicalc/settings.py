from dataclasses import dataclass, replace

from scicalc.evaluator import DEGREES, RADIANS


@dataclass(frozen=True)
class Settings:
    scientific_mode: bool = False
    angle_unit: str = DEGREES
    dark_mode: bool = False

    def to_record(self) -> dict:
        return {
            "scientific_mode": self.scientific_mode,
            "angle_mode": self.angle_unit,
            "dark_mode": self.dark_mode,
        }

    @classmethod
    def from_record(cls, record: dict) -> "Settings":
        angle = record.get("angle_mode")
        return cls(
            scientific_mode=_as_bool(record.get("scientific_mode")),
            angle_unit=angle if angle in (DEGREES, RADIANS) else DEGREES,
            dark_mode=_as_bool(record.get("dark_mode")),
        )

    def with_changes(self, **changes) -> "Settings":
        return replace(self, **changes)


def _as_bool(value) -> bool:
    # SQLite は 0/1、リモートは true/false や "true" で返ってくる
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def default_settings(prefers_dark: bool = False) -> Settings:
    """初回アクセス時の設定（ダークモードは OS の設定に合わせる）"""
    return Settings(scientific_mode=False, angle_unit=DEGREES, dark_mode=prefers_dark)
