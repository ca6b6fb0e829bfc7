import logging
import sys
import time

from fastapi import Request

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

request_logger = logging.getLogger("academy.requests")


def configure_logging(production: bool = False):
    root = logging.getLogger("academy")
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.INFO if production else logging.DEBUG)


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    request_logger.info(
        "%s %s %s %.1fms",
        request.method, request.url.path, response.status_code, elapsed_ms
    )
    return response
