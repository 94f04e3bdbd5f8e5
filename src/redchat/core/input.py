"""
Line input source

Terminal reads block, so LineReader runs them on a daemon thread and
hands every line to the event loop's queue. The thread owns nothing but
its read call; the process exit takes it down.
"""

from typing import Callable, Optional
import asyncio
import logging
import threading

from .actions import user_line

logger = logging.getLogger(__name__)

EXIT_COMMAND = "/exit"


class LineReader:
    """Reads lines with ``read_line(prompt)`` and forwards them as UserLine actions"""

    def __init__(self, read_line: Callable[[str], str], queue: asyncio.Queue,
                 prompt: str = ""):
        self.read_line = read_line
        self.queue = queue
        self.prompt = prompt
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> threading.Thread:
        if self._thread is None:
            self._loop = loop or asyncio.get_running_loop()
            self._thread = threading.Thread(target=self.run, name="line-reader", daemon=True)
            self._thread.start()
        return self._thread

    def _forward(self, text: str) -> bool:
        try:
            self._loop.call_soon_threadsafe(self.queue.put_nowait, user_line(text))
        except RuntimeError:
            # event loop already closed
            return False
        return True

    def run(self) -> None:
        while True:
            try:
                line = self.read_line(self.prompt)
            except (EOFError, KeyboardInterrupt, OSError) as e:
                logger.debug("Input closed: %r", e)
                self._forward(EXIT_COMMAND)
                return
            line = line.rstrip("\r\n")
            if not self._forward(line) or line == EXIT_COMMAND:
                return

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
