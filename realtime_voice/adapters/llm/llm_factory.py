from realtime_voice.core.adapter_registry import AdapterRegistry
from realtime_voice.core.interfaces.base_llm import BaseLLM

llm_registry: AdapterRegistry[BaseLLM] = AdapterRegistry("LLM", BaseLLM)
llm_registry.register("langchain", "realtime_voice.adapters.llm.langchain_llm_adapter")
