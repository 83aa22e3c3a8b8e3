import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from realtime_voice.core.config_models import AppConfig
from realtime_voice.core.models.exceptions import ConfigurationError
from realtime_voice.utils.logging_setup import logger

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class ConfigLoader:
    """YAML 配置加载器

    加载顺序: .env 文件 -> YAML -> ${ENV_VAR} 替换 -> AppConfig 校验
    """

    @staticmethod
    async def load_raw(config_path: Union[str, Path]) -> Dict[str, Any]:
        """异步读取 YAML 配置文件

        Raises:
            ConfigurationError: 文件不存在或格式错误
        """
        try:
            async with aiofiles.open(config_path, "r", encoding="utf-8") as f:
                content = await f.read()
            config_data = yaml.safe_load(content) or {}
        except FileNotFoundError as e:
            msg = f"配置文件 '{config_path}' 未找到。"
            logger.error(f"配置加载器: 错误 - {msg}")
            raise ConfigurationError(msg) from e
        except yaml.YAMLError as e:
            msg = f"解析配置文件 '{config_path}' 失败: {e}"
            logger.error(f"配置加载器: 错误 - {msg}")
            raise ConfigurationError(msg) from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"配置文件 '{config_path}' 顶层必须是字典")

        logger.info(f"配置加载器: 成功从 '{config_path}' 加载配置。")
        return config_data

    @staticmethod
    def resolve_env_vars(config: Any) -> Any:
        """递归解析 ${ENV_VAR} 与 ${ENV_VAR:default} 引用

        未设置且无默认值的引用保持原样。
        """
        if isinstance(config, str):
            def replacer(match: re.Match) -> str:
                env_value = os.getenv(match.group(1))
                if env_value is not None:
                    return env_value
                if match.group(2) is not None:
                    return match.group(2)
                logger.warning(f"环境变量 '{match.group(1)}' 未设置且无默认值")
                return match.group(0)

            return _ENV_PATTERN.sub(replacer, config)
        if isinstance(config, dict):
            return {k: ConfigLoader.resolve_env_vars(v) for k, v in config.items()}
        if isinstance(config, list):
            return [ConfigLoader.resolve_env_vars(item) for item in config]
        return config

    @staticmethod
    async def load_config(
        config_path: Union[str, Path],
        env_file: Optional[Union[str, Path]] = None,
    ) -> AppConfig:
        """加载并校验应用配置

        Args:
            config_path: YAML 配置文件路径
            env_file: .env 文件路径，缺省时在配置文件所在目录和当前目录中查找

        Raises:
            ConfigurationError: 读取、解析或校验失败
        """
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv(Path(config_path).parent / ".env")
            load_dotenv()

        raw = ConfigLoader.resolve_env_vars(await ConfigLoader.load_raw(config_path))

        try:
            return AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"配置文件 '{config_path}' 校验失败: {e}") from e
