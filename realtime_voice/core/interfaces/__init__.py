from .base_module import BaseModule
from .base_vad import BaseSpeechProbabilityModel
from .base_asr import BaseASR
from .base_llm import BaseLLM
from .base_tts import BaseTTS

__all__ = [
    "BaseModule", "BaseSpeechProbabilityModel", "BaseASR", "BaseLLM", "BaseTTS"
]
