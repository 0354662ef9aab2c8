"""needlevis 日志工具。

说明：
    - 核心模块只使用 `logging.getLogger(__name__)`，不主动添加 handler；
    - 入口（apps）通过 `get_logger` / `logger_from_settings` 统一配置控制台/文件输出；
    - 避免同名 logger 重复叠加 handler。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"


def get_logger(
    name: str,
    *,
    console_output: bool = True,
    file_output: bool = False,
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_file: str | Path | None = None,
) -> logging.Logger:
    """创建或获取一个已配置的 logger。

    Args:
        name: logger 名称（通常为 "needlevis"，让子模块 logger 经 propagate 汇总到这里）。
        console_output: 是否输出到控制台。
        file_output: 是否输出到文件。
        console_level: 控制台日志级别（字符串）。
        file_level: 文件日志级别（字符串）。
        log_file: 日志文件路径；为 None 时默认写到当前工作目录下的 `<name>.log`。

    Returns:
        logging.Logger: 配置完成的 logger。
    """

    logger = logging.getLogger(name)

    if getattr(logger, "_needlevis_configured", False):
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    fmt = logging.Formatter(fmt=_FORMAT, datefmt="%H:%M:%S")

    if console_output:
        ch = logging.StreamHandler()
        ch.setLevel(_parse_level(console_level))
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    if file_output:
        path = Path(log_file or f"{name}.log")
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(_parse_level(file_level))
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    setattr(logger, "_needlevis_configured", True)
    return logger


@dataclass(frozen=True)
class LoggingSettings:
    """分析入口的日志设置（来自配置文件的 `logging` 段，可被命令行覆盖）。

    Attributes:
        console_level: 控制台级别。
        file_level: 文件级别；clamp 之类的 debug 信息只在这里出现。
        file: 日志文件；None 表示不写文件。
    """

    console_level: str = "INFO"
    file_level: str = "DEBUG"
    file: Path | None = None

    def __post_init__(self) -> None:
        for name in ("console_level", "file_level"):
            level = str(getattr(self, name)).upper()
            if not isinstance(logging.getLevelName(level), int):
                raise ValueError(f"unknown log level for {name}: {getattr(self, name)!r}")
            object.__setattr__(self, name, level)


def logger_from_settings(settings: LoggingSettings, name: str = "needlevis") -> logging.Logger:
    """按 LoggingSettings 配置入口 logger。"""

    return get_logger(
        name,
        console_output=True,
        file_output=settings.file is not None,
        console_level=settings.console_level,
        file_level=settings.file_level,
        log_file=settings.file,
    )


def _parse_level(level: str) -> int:
    """解析日志级别字符串。"""

    value = logging.getLevelName(str(level).upper())
    if isinstance(value, int):
        return value
    return logging.INFO
