import logging
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


class Mirror:
    """ローカルに反映した変更を、保存先へ後から書き込む。

    タスクは1本のワーカーで順番に実行する。失敗はログに残し、on_error があればそれを呼ぶ。
    background=False のときはその場で実行する（テスト用）。
    """

    def __init__(self, background: bool = True):
        self.background = background
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mirror") if background else None

    def submit(self, label: str, fn, *args, on_done=None, on_error=None):
        if self._executor is None:
            self._run(label, fn, args, on_done, on_error)
            return
        self._executor.submit(self._run, label, fn, args, on_done, on_error)

    def _run(self, label, fn, args, on_done, on_error):
        try:
            result = fn(*args)
        except Exception as e:
            logger.warning("background %s failed", label, exc_info=True)
            if on_error is not None:
                on_error(e)
            return
        logger.debug("background %s done", label)
        if on_done is not None:
            on_done(result)

    def shutdown(self, wait: bool = True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
