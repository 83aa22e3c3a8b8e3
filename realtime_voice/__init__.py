"""实时语音对话编排：语音分段、识别、生成与合成的流式管道"""

__version__ = "0.1.0"
