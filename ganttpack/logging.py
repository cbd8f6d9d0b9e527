"""
日志配置模块

所有模块共用 ganttpack 日志器:
- 引擎模块记录环检测（WARNING）和逐帧决策（DEBUG）
- 拖拽控制器和会话通过 task_log 记录带任务字段的事件
- CLI 在 --json 下输出结构化日志，可选轮转文件
"""

import logging
import logging.handlers
import json
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any

from rich.console import Console


class LogLevel(Enum):
    """日志级别（与 .ganttpackrc 的 log_level 取值一致）"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    def to_logging_level(self) -> int:
        return getattr(logging, self.name)


@dataclass
class LoggingConfig:
    """日志配置"""
    level: LogLevel = LogLevel.WARNING
    console_enabled: bool = True
    file_enabled: bool = False
    file_path: str = ".ganttpack/ganttpack.log"
    max_size_mb: int = 10
    backup_count: int = 3
    json_format: bool = False


# task_log 附加到记录上的字段
TASK_FIELDS = ("task_id", "action", "comparison_level")

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(module)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """每条记录一行 JSON，带任务字段"""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }
        for field in TASK_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """带颜色的控制台格式化器"""

    COLORS = {
        logging.DEBUG: "\033[36m",     # Cyan
        logging.INFO: "\033[32m",      # Green
        logging.WARNING: "\033[33m",   # Yellow
        logging.ERROR: "\033[31m",     # Red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if self.use_colors:
            color = self.COLORS.get(record.levelno, self.RESET)
            record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class GanttpackLogger:
    """Ganttpack 日志管理器（单例，首次使用时按默认配置初始化）"""

    _instance: Optional["GanttpackLogger"] = None
    _logger: Optional[logging.Logger] = None

    def __new__(cls) -> "GanttpackLogger":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._logger is None:
            self._logger = logging.getLogger("ganttpack")
            self._config: Optional[LoggingConfig] = None

    def configure(self, config: Optional[LoggingConfig] = None) -> None:
        """
        配置日志系统，替换已有处理器。

        Args:
            config: 日志配置，None 时使用默认配置
        """
        self._config = config or LoggingConfig()
        level = self._config.level.to_logging_level()

        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()
        self._logger.setLevel(level)

        if self._config.console_enabled:
            console = logging.StreamHandler(sys.stderr)
            console.setFormatter(
                JSONFormatter() if self._config.json_format
                else ColoredFormatter(TEXT_FORMAT, use_colors=sys.stderr.isatty())
            )
            self._add_handler(console, level)

        if self._config.file_enabled:
            log_path = Path(self._config.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            rotating = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=self._config.max_size_mb * 1024 * 1024,
                backupCount=self._config.backup_count,
                encoding="utf-8",
            )
            rotating.setFormatter(
                JSONFormatter() if self._config.json_format else logging.Formatter(TEXT_FORMAT)
            )
            self._add_handler(rotating, level)

    def _add_handler(self, handler: logging.Handler, level: int) -> None:
        handler.setLevel(level)
        self._logger.addHandler(handler)

    @property
    def config(self) -> Optional[LoggingConfig]:
        return self._config

    @property
    def logger(self) -> logging.Logger:
        if self._config is None:
            self.configure()
        return self._logger

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str, exc_info: bool = False) -> None:
        self.logger.error(message, exc_info=exc_info)

    def task_log(
        self,
        message: str,
        task_id: str,
        action: Optional[str] = None,
        comparison_level: Optional[int] = None,
        level: LogLevel = LogLevel.DEBUG,
    ) -> None:
        """
        任务相关日志。

        Args:
            message: 日志消息
            task_id: 任务 ID
            action: 拖拽动作（move / start / end / progress）
            comparison_level: 比较层
            level: 日志级别
        """
        extra: Dict[str, Any] = {"task_id": task_id}
        if action:
            extra["action"] = action
        if comparison_level is not None:
            extra["comparison_level"] = comparison_level

        self.logger.log(level.to_logging_level(), message, extra=extra)


def get_logger() -> GanttpackLogger:
    """获取 Ganttpack 日志管理器实例"""
    return GanttpackLogger()


def configure_logging(
    level: str = "warning",
    console: bool = True,
    file: bool = False,
    file_path: str = ".ganttpack/ganttpack.log",
    json_format: bool = False,
) -> GanttpackLogger:
    """
    配置日志系统的便捷函数。

    Args:
        level: 日志级别 (debug, info, warning, error)
        console: 是否输出到 stderr
        file: 是否输出到文件
        file_path: 日志文件路径
        json_format: 是否使用 JSON 格式（CLI 的 --json 模式）

    Returns:
        配置好的 logger 实例
    """
    logger = get_logger()
    logger.configure(LoggingConfig(
        level=LogLevel(level.lower()),
        console_enabled=console,
        file_enabled=file,
        file_path=file_path,
        json_format=json_format,
    ))
    return logger


_consoles: Dict[bool, Console] = {}


def get_console(plain: bool = False) -> Console:
    """共享的 rich 控制台（输出到 stdout）；plain 时不输出任何样式"""
    if plain not in _consoles:
        _consoles[plain] = Console(color_system=None, highlight=False, emoji=False) if plain else Console()
    return _consoles[plain]


log = get_logger()
