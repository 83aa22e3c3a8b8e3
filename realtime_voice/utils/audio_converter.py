from math import gcd

import numpy as np
from scipy import signal

from realtime_voice.utils.logging_setup import logger


def pcm16_to_float32(pcm: bytes) -> np.ndarray:
    """16-bit 小端 PCM 字节 -> float32 数组，取值 [-1, 1)

    末尾不足一个样本的字节被忽略。
    """
    usable = len(pcm) - (len(pcm) % 2)
    audio_int16 = np.frombuffer(pcm[:usable], dtype="<i2")
    return audio_int16.astype(np.float32) / 32768.0


def float32_to_pcm16(audio_np: np.ndarray) -> bytes:
    """float32 数组 -> 16-bit 小端 PCM 字节（超出 [-1, 1] 的值被截断）"""
    clipped = np.clip(audio_np, -1.0, 1.0)
    return (clipped * 32767).astype("<i2").tobytes()


def resample_audio(audio_np: np.ndarray, orig_sample_rate: int, target_sample_rate: int) -> np.ndarray:
    """多相滤波重采样

    Args:
        audio_np: float32 单声道音频
        orig_sample_rate: 原采样率
        target_sample_rate: 目标采样率

    Returns:
        重采样后的 float32 音频；采样率相同时原样返回
    """
    if orig_sample_rate == target_sample_rate or audio_np.size == 0:
        return audio_np

    factor = gcd(orig_sample_rate, target_sample_rate)
    up = target_sample_rate // factor
    down = orig_sample_rate // factor
    logger.debug(f"重采样 {orig_sample_rate}Hz -> {target_sample_rate}Hz (up={up}, down={down})")
    return signal.resample_poly(audio_np, up, down).astype(np.float32)
