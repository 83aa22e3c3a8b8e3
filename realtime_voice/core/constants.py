"""Core constants for the realtime voice pipeline.

This module centralizes magic numbers and configuration defaults
shared by the segmenter, the session store and the pipeline.
"""

# =============================================================================
# Audio Constants
# =============================================================================

AUDIO_SAMPLE_RATE = 16000  # Hz
AUDIO_CHANNELS = 1  # Mono
AUDIO_SAMPLE_WIDTH = 2  # 16-bit (2 bytes per sample)
AUDIO_BYTES_PER_SECOND = AUDIO_SAMPLE_RATE * AUDIO_CHANNELS * AUDIO_SAMPLE_WIDTH

# =============================================================================
# VAD (Voice Activity Detection) Constants
# =============================================================================

DEFAULT_VAD_THRESHOLD = 0.5
DEFAULT_MIN_SPEECH_DURATION_MS = 250
DEFAULT_MIN_SILENCE_DURATION_MS = 300
VAD_WINDOW_SIZE_16K = 512  # 32ms at 16kHz
VAD_WINDOW_SIZE_8K = 256  # 32ms at 8kHz

# Silero 风格的循环状态: 2 层, batch 1, 128 隐藏单元
VAD_STATE_SHAPE = (2, 1, 128)

# =============================================================================
# Session Constants
# =============================================================================

DEFAULT_SESSION_ID = "__default__"
SESSION_ID_MAX_LENGTH = 256
SESSION_ID_PATTERN = r"[A-Za-z0-9_-]+"

# =============================================================================
# Conversation Constants
# =============================================================================

DEFAULT_MAX_CONVERSATION_HISTORY = 20
DEFAULT_LANGUAGE = "en-US"
DEFAULT_MAX_CONSECUTIVE_ERRORS = 5
