"""日志初始化

所有模块共用 "realtime-voice" logger；setup_logging 只管理自己安装到根 logger 上的
handler，重复调用会替换掉上一次安装的 handler，不会影响宿主程序已有的 handler。
"""

import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from realtime_voice.core.config_models import LoggingConfig

logger = logging.getLogger("realtime-voice")

# 标记由本模块安装的 handler
_OWNED_ATTR = "_realtime_voice_handler"

# 随日志记录透传到 JSON 输出的上下文字段
_CONTEXT_FIELDS = ("session_id", "module_id", "stage")


class JsonFormatter(logging.Formatter):
    """每条日志输出为一行 JSON，附带会话上下文字段"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class SessionLoggerAdapter(logging.LoggerAdapter):
    """为一次会话的日志自动附加 session_id，并在文本格式下加上前缀"""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("session_id", self.extra["session_id"])
        kwargs["extra"] = extra
        return f"[session={self.extra['session_id']}] {msg}", kwargs


def session_logger(session_id: str) -> SessionLoggerAdapter:
    return SessionLoggerAdapter(logger, {"session_id": session_id})


def _coerce_config(config: Optional[Union[LoggingConfig, Dict[str, Any]]]) -> LoggingConfig:
    if config is None:
        return LoggingConfig()
    if isinstance(config, LoggingConfig):
        return config
    # 允许直接传入完整的应用配置字典
    section = config.get("logging", config)
    return LoggingConfig.model_validate(section or {})


def _build_handlers(config: LoggingConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.file_path:
        log_file = Path(config.file_path)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    filename=log_file,
                    maxBytes=config.max_bytes,
                    backupCount=config.backup_count,
                    encoding=config.encoding,
                )
            )
        except OSError as e:
            # 文件日志不可用时退回到仅控制台输出
            sys.stderr.write(f"realtime-voice: 无法写入日志文件 {log_file}: {e}\n")

    return handlers


def setup_logging(config: Optional[Union[LoggingConfig, Dict[str, Any]]] = None) -> logging.Logger:
    """按 LoggingConfig 配置根 logger，返回 "realtime-voice" logger

    Args:
        config: LoggingConfig、logging 配置字典或包含 "logging" 键的应用配置；None 使用默认值
    """
    config = _coerce_config(config)

    root = logging.getLogger()
    root.setLevel(config.level)

    for handler in [h for h in root.handlers if getattr(h, _OWNED_ATTR, False)]:
        root.removeHandler(handler)
        handler.close()

    if config.json_format:
        formatter: logging.Formatter = JsonFormatter(datefmt=config.date_format)
    else:
        formatter = logging.Formatter(fmt=config.format, datefmt=config.date_format)

    for handler in _build_handlers(config):
        handler.setFormatter(formatter)
        setattr(handler, _OWNED_ATTR, True)
        root.addHandler(handler)

    for name, level in config.quiet_loggers.items():
        logging.getLogger(name).setLevel(level)

    logger.debug(f"日志已初始化: level={config.level}, file={config.file_path or '-'}")
    return logger
