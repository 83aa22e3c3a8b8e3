from realtime_voice.core.adapter_registry import AdapterRegistry
from realtime_voice.core.interfaces.base_vad import BaseSpeechProbabilityModel

vad_registry: AdapterRegistry[BaseSpeechProbabilityModel] = AdapterRegistry("VAD", BaseSpeechProbabilityModel)
vad_registry.register("silero", "realtime_voice.adapters.vad.silero_vad_adapter")
