import pytest

from realtime_voice.core.config_models import AppConfig
from realtime_voice.core.models.exceptions import ConfigurationError
from realtime_voice.utils.config_loader import ConfigLoader

CONFIG_YAML = """
logging:
  level: debug
pipeline:
  default_system_prompt: "${TEST_SYSTEM_PROMPT:You are a helpful voice assistant.}"
  max_consecutive_errors: 3
modules:
  vad:
    adapter_type: silero
    config:
      threshold: 0.6
  asr:
    adapter_type: funasr_sensevoice
  llm:
    adapter_type: langchain
    config:
      model_name: "${TEST_MODEL_NAME}"
      api_key_env_var: OPENAI_API_KEY
  tts:
    adapter_type: edge_tts
    enabled: false
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


class TestConfigLoader:

    @pytest.mark.asyncio
    async def test_load_config(self, config_file, monkeypatch):
        monkeypatch.delenv("TEST_SYSTEM_PROMPT", raising=False)
        monkeypatch.setenv("TEST_MODEL_NAME", "gpt-4o-mini")

        config = await ConfigLoader.load_config(config_file)

        assert isinstance(config, AppConfig)
        assert config.logging.level == "DEBUG"
        assert config.pipeline.default_system_prompt == "You are a helpful voice assistant."
        assert config.pipeline.max_consecutive_errors == 3
        assert config.modules.vad.config["threshold"] == 0.6
        assert config.modules.llm.config["model_name"] == "gpt-4o-mini"
        assert config.modules.tts.enabled is False

    @pytest.mark.asyncio
    async def test_env_file_is_loaded(self, config_file, tmp_path, monkeypatch):
        # 先 setenv 再 delenv，测试结束后 dotenv 写入的值也会被撤销
        monkeypatch.setenv("TEST_SYSTEM_PROMPT", "placeholder")
        monkeypatch.delenv("TEST_SYSTEM_PROMPT")
        env_file = tmp_path / "custom.env"
        env_file.write_text("TEST_SYSTEM_PROMPT=from env file\n", encoding="utf-8")

        config = await ConfigLoader.load_config(config_file, env_file=env_file)

        assert config.pipeline.default_system_prompt == "from env file"

    def test_resolve_env_vars(self, monkeypatch):
        monkeypatch.setenv("TEST_HOST", "localhost")
        monkeypatch.delenv("TEST_MISSING", raising=False)

        resolved = ConfigLoader.resolve_env_vars({
            "url": "http://${TEST_HOST}:${TEST_PORT:8000}",
            "items": ["${TEST_HOST}", 3],
            "missing": "${TEST_MISSING}",
        })

        assert resolved == {
            "url": "http://localhost:8000",
            "items": ["localhost", 3],
            "missing": "${TEST_MISSING}",
        }

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="未找到"):
            await ConfigLoader.load_config(tmp_path / "absent.yaml")

    @pytest.mark.asyncio
    async def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("modules: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            await ConfigLoader.load_raw(path)

    @pytest.mark.asyncio
    async def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            await ConfigLoader.load_raw(path)

    @pytest.mark.asyncio
    async def test_validation_error(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("pipeline:\n  max_consecutive_errors: 0\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="校验失败"):
            await ConfigLoader.load_config(path)
