import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from scicalc.errors import AuthRequiredError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    user_id: str
    name: Optional[str] = None


class AuthSession:
    """現在ログインしているユーザーを保持する"""

    def __init__(self, user: Optional[User] = None):
        self.user = user
        self._listeners: List[Callable[[Optional[User]], None]] = []
        self._started = False

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    def start(self, on_change: Callable[[Optional[User]], None]):
        """起動時に一度だけ、ログイン状態に応じたコールバックを呼ぶ"""
        if self._started:
            return
        self._started = True
        self._listeners.append(on_change)
        on_change(self.user)

    def _notify(self):
        for listener in self._listeners:
            listener(self.user)

    def login(self, user: User):
        logger.info("signed in as %s", user.user_id)
        self.user = user
        self._notify()

    def logout(self):
        if self.user is None:
            return
        logger.info("signed out %s", self.user.user_id)
        self.user = None
        self._notify()

    def require_user(self) -> User:
        if self.user is None:
            raise AuthRequiredError("sign in to use memory and history")
        return self.user
