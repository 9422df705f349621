import logging
import sys

# Package root so that module loggers (logging.getLogger(__name__)) are children
LOGGER_NAME = "shader_nodes"


def get_logger() -> logging.Logger:
    """Get the standard logger for Shader Nodes."""
    return logging.getLogger(LOGGER_NAME)


def setup_logger(level=logging.INFO):
    """
    Configure the Shader Nodes logger.

    Args:
        level: Logging level (default: INFO)
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if logger.handlers:
        logger.handlers.clear()

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)

    # Format: [shader_nodes] [Level] Message
    formatter = logging.Formatter(f'[{LOGGER_NAME}] [%(levelname)s] %(message)s')
    ch.setFormatter(formatter)

    logger.addHandler(ch)
    logger.propagate = False
    return logger


def log_info(msg: str):
    get_logger().info(msg)


def log_warning(msg: str):
    get_logger().warning(msg)


def log_error(msg: str):
    get_logger().error(msg)


def log_debug(msg: str):
    get_logger().debug(msg)
