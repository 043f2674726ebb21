#!/usr/bin/env python3
"""Run the job store web UI until interrupted.

Usage:
  WORKUI_USERNAME=admin WORKUI_PASSWORD=secret REDIS_URL=redis://localhost:6379/0 python scripts/webui.py

Environment variables:
- WORKUI_LISTEN (optional, default 127.0.0.1:5040)
- WORKUI_NAMESPACE (optional, default work)
- WORKUI_AUTH_POLICY (optional, legacy or strict)
- TESTING=1 to use in-memory redis
"""
import logging
import os
import signal
import threading

from workui.main import app
from workui.server import WebUIServer, split_host_port

LISTEN = os.getenv("WORKUI_LISTEN", "127.0.0.1:5040")


def run_webui(done=None):
    host, port = split_host_port(LISTEN)
    server = WebUIServer(app, host=host, port=port)
    done = done or threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())
    signal.signal(signal.SIGTERM, lambda *_: done.set())

    server.start()
    done.wait()
    server.stop()


if __name__ == "__main__":
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_webui()
