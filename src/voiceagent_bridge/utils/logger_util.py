import logging
import os
from pathlib import Path


def get_logger(name: str, level=logging.INFO) -> logging.Logger:
    """Get a named logger with standard formatting.

    Example:
        logger = get_logger(__name__)
        logger.info("This is an info message.")

    Records go to stderr and, when the log directory can be created, to
    ``<VOICE_AGENT_LOG_DIR>/<name>.log`` (default directory: ``log``).

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)

    # avoid adding duplicate handlers if called repeatedly (common in tests)
    if logger.handlers:
        logger.setLevel(level)
        return logger

    logs_dir = Path(os.environ.get("VOICE_AGENT_LOG_DIR", "log"))
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        # read-only working directory: stream only
        logs_dir = None

    formatter = logging.Formatter(
        "%(asctime)s || %(name)s || %(threadName)s\n%(levelname)s || %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if logs_dir is not None:
        filehandler = logging.FileHandler(str(logs_dir / f"{name}.log"), encoding="utf-8")
        filehandler.setFormatter(formatter)
        logger.addHandler(filehandler)

    logger.setLevel(level)
    # stop passing records to the root logger (avoid duplicated messages)
    logger.propagate = False
    logger.debug("logger '%s' initialized with level %s", name, logging.getLevelName(level))
    return logger
