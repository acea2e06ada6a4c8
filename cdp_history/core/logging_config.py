import logging
import sys

_HANDLER_NAME = "cdp_history.console"

def setup_logging(level: str = "INFO"):
    """Configure structured logging. Safe to call more than once."""

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    if not any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        # Create formatter
        formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.set_name(_HANDLER_NAME)
        root_logger.addHandler(console_handler)

    # Silence noisy transport loggers; RPC payloads are logged by cdp_history.services.rpc
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root_logger
