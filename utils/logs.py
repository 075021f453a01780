# utils/logs.py
import logging


def get_logger(name, level=logging.INFO):
    """
    Return a named logger with the project's stream handler attached.

    Every component logs through its own named logger ("coordinator",
    "client", "session", ...). The handler is only attached the first time a
    name is requested so repeated imports do not duplicate output lines.

    Args:
        name (str): Logger name, usually the component name
        level (int): Logging level. Defaults to logging.INFO

    Returns:
        logging.Logger: The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(handler)
    return logger
