"""Logger module for chainload

Usage:
    from chainload.logger import Logger, StructuredLogger

    # Use the shared logger
    from chainload.logger import session_logger
    session_logger.info("bench.run_start", event="bench.run_start", concurrency=8)

    # Or implement your own
    class MyCustomLogger(Logger):
        def info(self, message: str, **kwargs):
            # Your custom implementation
            pass
"""

from chainload.logger.structured import ConsoleLogger, Logger, StructuredLogger, build_session_logger

# Shared logger instance for modules that just need basic console logging
session_logger: Logger = build_session_logger()

__all__ = [
    "Logger",
    "StructuredLogger",
    "ConsoleLogger",
    "build_session_logger",
    "session_logger",
]
