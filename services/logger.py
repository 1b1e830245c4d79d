import logging
import sys
import os
from datetime import datetime

import services.util as u

# ANSI 颜色码
COLORS = {
    'DBG': '\033[36m',   # 青蓝
    'INF': '\033[32m',   # 绿色
    'WRN': '\033[33m',   # 黄色
    'ERR': '\033[31m',   # 红色
    'CRT': '\033[91m\033[1m',  # 亮红加粗
    'RST': '\033[0m'
}

# 是否为终端
IS_TTY = sys.stdout.isatty()

# 日志文件输出目录：<data>/logs
LOG_DIR = os.path.join(u.get_data_path(), "logs")

# 控制台日志级别，文件始终记录 DEBUG
CONSOLE_LEVEL = (u.get_env("BRIDGE_LOG_LEVEL") or "INFO").upper()


# Secrets (WebSocket access tokens) redacted from every record.
_sensitive: set[str] = set()


def register_sensitive(values) -> None:
    """Register secret strings that must never appear in log output."""
    _sensitive.clear()
    # Short tokens would mask ordinary words
    _sensitive.update(v for v in values if v and len(v) >= 6)


class MaskingFilter(logging.Filter):
    """Redacts registered tokens from every log record before emission."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _sensitive:
            msg = record.getMessage()
            for secret in _sensitive:
                msg = msg.replace(secret, "***")
            record.msg = msg
            record.args = ()
        return True


class CustomFormatter(logging.Formatter):
    replaces = {
        'DEBUG': '[DBG]',
        'INFO': '[INF]',
        'WARNING': '[WRN]',
        'ERROR': '[ERR]',
        'CRITICAL': '[CRT]'
    }

    def format(self, record):
        timestamp = datetime.now().strftime('[%Y-%m-%d %H:%M:%S]')
        level = self.replaces.get(record.levelname, f'[{record.levelname}]')
        color_key = level[1:4]

        if IS_TTY and color_key in COLORS:
            level = COLORS[color_key] + level + COLORS['RST']

        return f"{timestamp} {level} | {record.module}:{record.lineno} | {record.getMessage()}"


logger = logging.getLogger('onebot_bridge')
logger.setLevel(logging.DEBUG)
logger.addFilter(MaskingFilter())

# 清除已有 handlers 防止重复
for handler in logger.handlers:
    handler.close()
logger.handlers.clear()
logger.propagate = False

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(CustomFormatter())
console_handler.setLevel(getattr(logging, CONSOLE_LEVEL, logging.INFO))
logger.addHandler(console_handler)


def enable_file_log() -> str:
    """Attach a DEBUG file handler writing to <data>/logs/<timestamp>.log.

    Called by ``main.py`` only, so importing the package (e.g. from tests)
    never creates log files.
    """
    os.makedirs(LOG_DIR, exist_ok=True)
    # 20250915-150316069.log
    filename = datetime.now().strftime("%Y%m%d-%H%M%S%f")[:-3] + ".log"
    path = os.path.join(LOG_DIR, filename)

    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)s] | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)
    return path


def get_logger(name=None):
    """返回已配置的日志器（当前共享同一实例）"""
    return logger
