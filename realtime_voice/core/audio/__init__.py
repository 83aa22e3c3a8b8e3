from .speech_segmenter import SpeechSegmenter

__all__ = ["SpeechSegmenter"]
