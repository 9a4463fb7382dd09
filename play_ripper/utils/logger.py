"""
日志模块 - 包日志同时写入 logs/ 下的文件和标准输出
"""
import logging
import os
import sys


LOGGER_NAME = "play_ripper"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_logs_dir() -> str:
    """PLAY_RIPPER_LOG_DIR if set, else logs/ at the project root."""
    override = os.environ.get("PLAY_RIPPER_LOG_DIR", "").strip()
    if override:
        return os.path.abspath(os.path.expanduser(override))
    root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.path.join(root, "logs")


LOGS_DIR = resolve_logs_dir()


def parse_level(value, default: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    return LOG_LEVEL_MAP.get(str(value or "").strip().upper(), default)


def level_from_env() -> int:
    return parse_level(os.environ.get("PLAY_RIPPER_LOG_LEVEL") or os.environ.get("LOG_LEVEL"))


def _open_file_handler(path: str):
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        return logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        # An unwritable log location must not stop the program; keep the console.
        print(f"Cannot open log file {path}, logging to console only: {e}", file=sys.stderr)
        return None


def setup_logger(name: str = LOGGER_NAME, level=None, log_file: str | None = None) -> logging.Logger:
    """配置并返回日志记录器

    Configuring the same name twice returns the existing logger unchanged.
    """
    log = logging.getLogger(name)
    if log.handlers:
        return log

    level = level_from_env() if level is None else parse_level(level)
    log.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [
        _open_file_handler(log_file or os.path.join(LOGS_DIR, f"{name}.log")),
        logging.StreamHandler(sys.stdout),
    ]
    for handler in handlers:
        if handler is None:
            continue
        handler.setLevel(level)
        handler.setFormatter(formatter)
        log.addHandler(handler)
    return log


def set_level(level) -> None:
    """Change the level of the package logger and every handler on it (-v)."""
    level = parse_level(level)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


logger = setup_logger()
