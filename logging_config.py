import logging
import os
import sys

from pythonjsonlogger import jsonlogger

HANDLER_NAME = "live_transcript_stream"

# Client libraries that log every request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "google_genai", "pydub.converter")


def setup_logging():
    """
    Configures structured JSON logging on stdout and returns the root logger.

    Each record carries timestamp, level, logger name, message and the Datadog
    trace_id/span_id injected by ddtrace. The level comes from LOG_LEVEL
    (default INFO). Calling it again is cheap: the handler is only installed
    once per process.

    Returns:
        logging.Logger: The configured root logger instance.
    """
    root_logger = logging.getLogger()
    if any(handler.name == HANDLER_NAME for handler in root_logger.handlers):
        return root_logger

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.name = HANDLER_NAME
    stream_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(span_id)s"
        )
    )

    root_logger.handlers = [stream_handler]
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

    for logger_name in QUIET_LOGGERS:
        lib_logger = logging.getLogger(logger_name)
        lib_logger.setLevel(logging.WARNING)
        lib_logger.handlers = [stream_handler]
        lib_logger.propagate = False

    return root_logger
