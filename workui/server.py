import logging
import threading
import time
from typing import Optional

import uvicorn

logger = logging.getLogger(__name__)


def split_host_port(listen: str):
    host, _, port = listen.rpartition(":")
    return host or "0.0.0.0", int(port)


class WebUIServer:
    """Serves the management API on a background thread.

    stop() stops accepting connections, waits for in-flight requests to
    finish and only then returns.
    """

    def __init__(self, app, host: str = "127.0.0.1", port: int = 5040):
        config = uvicorn.Config(app, host=host, port=port, log_config=None)
        self._server = uvicorn.Server(config)
        self._thread: Optional[threading.Thread] = None

    @property
    def started(self) -> bool:
        return self._server.started

    @property
    def port(self) -> Optional[int]:
        for server in getattr(self._server, "servers", []):
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None

    def start(self):
        if self._thread is not None:
            raise RuntimeError("server already started")
        self._thread = threading.Thread(target=self._server.run, name="workui-server", daemon=True)
        self._thread.start()
        logger.info("web ui listening on %s:%s", self._server.config.host, self._server.config.port)

    def wait_started(self, timeout: float = 5.0) -> bool:
        deadline = time.time() + timeout
        while not self._server.started:
            if time.time() > deadline or not (self._thread and self._thread.is_alive()):
                return False
            time.sleep(0.05)
        return True

    def stop(self):
        if self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join()
        self._thread = None
        logger.info("web ui stopped")
