"""核心异常定义"""

from typing import Any, Dict, Optional


class FrameworkException(Exception):
    """框架基础异常"""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "error_code": self.error_code,
            "message": str(self),
            "details": self.details,
        }


class ModuleInitializationError(FrameworkException):
    """模块初始化错误"""

    def __init__(
        self,
        message: str,
        *,
        module_id: Optional[str] = None,
        adapter_type: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        if module_id:
            self.details["module_id"] = module_id
        if adapter_type:
            self.details["adapter_type"] = adapter_type


class ModuleProcessingError(FrameworkException):
    """模块处理错误（可恢复，单个语音段失败）"""

    pass


class PortUnavailableError(ModuleProcessingError):
    """能力端口永久不可用（不可恢复，终止整个对话流）"""

    pass


class PipelineExecutionError(FrameworkException):
    """管道执行错误"""

    pass


class ComponentClosedError(FrameworkException):
    """组件已关闭后仍被调用"""

    def __init__(self, component: str, **kwargs: Any):
        super().__init__(f"{component} 已关闭，无法继续使用", **kwargs)
        self.details["component"] = component


class ConfigurationError(FrameworkException):
    """配置错误"""

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        if config_key:
            self.details["config_key"] = config_key


class InvalidSessionIdError(ConfigurationError):
    """会话 ID 非法（长度或字符集不符合要求）"""

    def __init__(self, session_id: Any, **kwargs: Any):
        shown = str(session_id)
        if len(shown) > 40:
            shown = shown[:40] + "..."
        super().__init__(f"非法的会话 ID: '{shown}'", config_key="session_id", **kwargs)
