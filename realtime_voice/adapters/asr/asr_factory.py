from realtime_voice.core.adapter_registry import AdapterRegistry
from realtime_voice.core.interfaces.base_asr import BaseASR

asr_registry: AdapterRegistry[BaseASR] = AdapterRegistry("ASR", BaseASR)
asr_registry.register("funasr_sensevoice", "realtime_voice.adapters.asr.funasr_sensevoice_adapter")
