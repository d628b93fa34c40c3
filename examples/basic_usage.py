"""
Basic usage example for logshipper.

Ships the root logger's records to a CloudWatch Logs stream. The log group
must already exist; the stream is created on first use.

    LOGSHIPPER_CLOUDWATCH__LOG_GROUP_NAME=/demo \
    LOGSHIPPER_CLOUDWATCH__LOG_STREAM_NAME=basic-usage \
    python examples/basic_usage.py
"""

import logging

from logshipper import InitializationError, StreamHook, enable_stdlib_bridge


def main() -> None:
    try:
        hook = StreamHook()
    except InitializationError as exc:
        raise SystemExit(f"cannot reach log stream: {exc}") from exc

    with hook:
        enable_stdlib_bridge(hook, set_logger_level=True)
        log = logging.getLogger("demo")

        log.info("Application started")
        log.debug("Debug message")
        log.warning("Warning message")

        # Maintenance window: keep collecting, stop appending
        hook.pause()
        log.error("Buffered while paused")
        hook.resume()

        log.info("Shutting down")
    # Leaving the block stops the dispatcher after a final flush


if __name__ == "__main__":
    main()
