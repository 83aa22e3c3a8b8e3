from pathlib import Path
from typing import Union

from realtime_voice.core.models.exceptions import ConfigurationError


def get_project_root() -> Path:
    """项目根目录（project_root/realtime_voice/utils/paths.py）"""
    return Path(__file__).resolve().parent.parent.parent


def resolve_project_path(path_str: Union[str, Path]) -> Path:
    """相对路径按项目根目录解析，绝对路径原样返回"""
    path = Path(path_str)
    if path.is_absolute():
        return path
    return get_project_root() / path


def resolve_model_path(path_str: Union[str, Path], cache_dir: Union[str, Path]) -> Path:
    """解析模型路径，结果必须位于 cache_dir 之内

    Raises:
        ConfigurationError: 路径越出缓存目录（例如包含 '..'）
    """
    cache_root = resolve_project_path(cache_dir).resolve()
    candidate = Path(path_str)
    if not candidate.is_absolute():
        candidate = cache_root / candidate
    resolved = candidate.resolve()

    if resolved != cache_root and cache_root not in resolved.parents:
        raise ConfigurationError(
            f"模型路径 '{path_str}' 不在缓存目录 '{cache_root}' 内",
            config_key="model_path",
        )
    return resolved
