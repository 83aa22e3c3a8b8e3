import pytest

from realtime_voice.core.models.exceptions import ConfigurationError
from realtime_voice.utils.paths import get_project_root, resolve_model_path, resolve_project_path


class TestPaths:

    def test_project_root_contains_package(self):
        assert (get_project_root() / "realtime_voice").is_dir()

    def test_resolve_project_path(self, tmp_path):
        assert resolve_project_path(tmp_path) == tmp_path
        assert resolve_project_path("models") == get_project_root() / "models"

    def test_model_path_inside_cache(self, tmp_path):
        assert resolve_model_path("asr/SenseVoiceSmall", tmp_path) == (tmp_path / "asr" / "SenseVoiceSmall").resolve()

    @pytest.mark.parametrize("path", ["../outside", "asr/../../outside", "/etc/passwd"])
    def test_model_path_escaping_cache(self, tmp_path, path):
        with pytest.raises(ConfigurationError):
            resolve_model_path(path, tmp_path / "cache")
