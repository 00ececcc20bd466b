import logging
from typing import Dict

import aiohttp

from task_scheduler.domain.task import Task, TaskKind
from task_scheduler.executors.protocol import TaskExecutor

logger = logging.getLogger(__name__)

BAR_URL = "https://www.whattimeisitrightnow.com/"

# The site answers 400 Bad Request unless the request looks like it came from a browser.
BAR_HEADERS: Dict[str, str] = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64; rv:124.0) Gecko/20100101 Firefox/124.0",
    "Accept": "text/html",
}


class BarTaskExecutor(TaskExecutor):
    """
    Task executor for Bar tasks: makes an HTTP GET request using aiohttp and prints
    the response status code. Request failures are printed, not raised.
    """

    def __init__(self, url: str = BAR_URL, timeout: float = 10.0):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @staticmethod
    def supported_kind() -> TaskKind:
        return TaskKind.BAR

    async def async_execute(self, task: Task) -> None:
        """
        Asynchronously execute the given task by making an HTTP request.

        Args:
            task (Task): The task to be executed.
        """
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self.url, headers=BAR_HEADERS) as response:
                    message = str(response.status)
        except Exception as e:
            logger.warning("Bar task %s request failed: %s", task.id, type(e).__name__)
            message = f"Unexpected error: {e}"
        print(message)
