#!/usr/bin/env python3
"""
Development server
Reads DEV_HOST, DEV_PORT, DEV_PORT_RANGE and DEV_RELOAD from the environment
or .env; without a fixed port the first free one in the range is used.
"""
import socket

import structlog
import uvicorn

from society_gate.config import settings

logger = structlog.get_logger(__name__)


def is_port_available(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False


def pick_port(host: str) -> int:
    if settings.dev_port is not None:
        return settings.dev_port

    start, end = settings.dev_port_range
    for port in range(start, end + 1):
        if is_port_available(host, port):
            return port
    raise RuntimeError(f"No available ports in range {start}-{end}")


def main():
    host = settings.dev_host
    port = pick_port(host)
    logger.info("dev_server_starting", service=settings.service_name, host=host, port=port, reload=settings.dev_reload)
    uvicorn.run(
        "society_gate.main:app",
        host=host,
        port=port,
        reload=settings.dev_reload,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
