from realtime_voice.core.adapter_registry import AdapterRegistry
from realtime_voice.core.interfaces.base_tts import BaseTTS

tts_registry: AdapterRegistry[BaseTTS] = AdapterRegistry("TTS", BaseTTS)
tts_registry.register("edge_tts", "realtime_voice.adapters.tts.edge_tts_adapter")
