from .interrupt_manager import InterruptManager
from .pipeline import ConversationPipeline

__all__ = ["InterruptManager", "ConversationPipeline"]
