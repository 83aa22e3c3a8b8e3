"""实时对话管道

把语音分段、语音识别、回复生成和语音合成串成两种入口:
- process_turn: 单轮，一次性输入完整音频，返回 ConversationTurn
- converse: 全双工流式，输入音频块流，输出有序的 ConversationEvent 流

两种入口都按会话 ID 共享会话历史，并支持通过 InterruptManager 打断。
"""

import asyncio
import time
from contextlib import aclosing
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterable,
    BinaryIO,
    Dict,
    List,
    Optional,
    Union,
)

from realtime_voice.core.audio.speech_segmenter import SpeechSegmenter
from realtime_voice.core.config_models import PipelineConfig
from realtime_voice.core.constants import DEFAULT_SESSION_ID
from realtime_voice.core.conversation.interrupt_manager import InterruptManager
from realtime_voice.core.interfaces import BaseASR, BaseLLM, BaseTTS
from realtime_voice.core.models import (
    ConversationEvent,
    ConversationMessage,
    ConversationOptions,
    ConversationTurn,
    ErrorEvent,
    InterruptedEvent,
    ResponseAudioChunkEvent,
    ResponseCompleteEvent,
    ResponseStartedEvent,
    ResponseTextChunkEvent,
    SpeechDetectedEvent,
    TextToSpeechOptions,
    TranscriptionCompleteEvent,
    TranscriptionPartialEvent,
)
from realtime_voice.core.models.exceptions import (
    ComponentClosedError,
    PipelineExecutionError,
    PortUnavailableError,
)
from realtime_voice.core.session.history import trim_history
from realtime_voice.core.session.session_store import ConversationSessionStore
from realtime_voice.utils.logging_setup import logger

AudioInput = Union[bytes, bytearray, BinaryIO]


class _Interrupted(Exception):
    """内部信号：观察到打断"""


# 这些错误不转换为 Error 事件，直接向上抛出
_PASSTHROUGH_ERRORS = (_Interrupted, PortUnavailableError, ComponentClosedError)


class _ConverseContext:
    """单次 converse 调用的上下文"""

    def __init__(
        self,
        session_id: str,
        history: List[ConversationMessage],
        lock: asyncio.Lock,
        options: ConversationOptions,
        interrupt: Optional[InterruptManager],
        tts_options: TextToSpeechOptions,
        language: Optional[str],
    ):
        self.session_id = session_id
        self.history = history
        self.lock = lock
        self.options = options
        self.interrupt = interrupt
        self.tts_options = tts_options
        self.language = language
        self.consecutive_errors = 0
        self.segment_failed = False


class ConversationPipeline:
    """实时语音对话管道

    Args:
        transcriber: 语音识别端口
        generator: 回复生成端口
        session_store: 会话存储
        synthesizer: 语音合成端口（可选，缺省时只输出文本）
        segmenter: 语音分段器（可选，缺省时整段输入视为一个语音段）
        config: 管道默认配置

    错误策略（converse）: 单个语音段的阶段失败产出 Error 事件后继续处理下一段；
    端口永久不可用、组件已关闭、会话存储失败、分段器失败，以及连续失败的语音段
    超过 max_consecutive_errors 时，异常直接抛出并结束整个流。
    """

    def __init__(
        self,
        transcriber: BaseASR,
        generator: BaseLLM,
        session_store: ConversationSessionStore,
        synthesizer: Optional[BaseTTS] = None,
        segmenter: Optional[SpeechSegmenter] = None,
        config: Optional[PipelineConfig] = None,
    ):
        if transcriber is None:
            raise ValueError("transcriber 不能为空")
        if generator is None:
            raise ValueError("generator 不能为空")
        if session_store is None:
            raise ValueError("session_store 不能为空")

        self.transcriber = transcriber
        self.generator = generator
        self.session_store = session_store
        self.synthesizer = synthesizer
        self.segmenter = segmenter
        self.config = config or PipelineConfig()
        self._closed = False

        logger.info(
            f"ConversationPipeline 初始化完成: segmenter={'on' if segmenter else 'off'}, "
            f"synthesizer={'on' if synthesizer else 'off'}"
        )

    # ==================== 公共入口 ====================

    async def process_turn(
        self,
        audio: AudioInput,
        options: Optional[ConversationOptions] = None,
        interrupt: Optional[InterruptManager] = None,
    ) -> ConversationTurn:
        """处理一轮完整对话: 识别 -> 生成 -> 合成

        Args:
            audio: 完整的 PCM 音频（bytes 或二进制文件对象）
            options: 调用选项
            interrupt: 打断信号

        Returns:
            ConversationTurn

        Raises:
            asyncio.CancelledError: 在阶段边界观察到打断
            ModuleProcessingError: 任一阶段失败（生成失败时用户消息保留在历史中）
        """
        self._ensure_open()
        options = options or ConversationOptions()
        session_id = self._resolve_session_id(options)
        started = time.perf_counter()

        audio_bytes = await self._read_audio(audio)
        self._check_turn_interrupt(interrupt, session_id)

        history = await self.session_store.get_or_create(session_id)
        lock = await self.session_store.lock_for(session_id)

        async with lock:
            self._ensure_system_prompt(history, options)
            language = options.language or self.config.default_language

            user_text = await self.transcriber.transcribe(audio_bytes, language)
            self._check_turn_interrupt(interrupt, session_id)
            logger.info(f"ConversationPipeline (Session: {session_id}) 识别结果: '{user_text[:50]}'")

            user_message = ConversationMessage.user(user_text)
            history.append(user_message)
            response_audio: Optional[bytes] = None
            audio_media_type: Optional[str] = None
            try:
                try:
                    response_text = await self.generator.generate(list(history))
                    self._check_turn_interrupt(interrupt, session_id)
                except asyncio.CancelledError:
                    self._rollback_user_message(history, user_message, session_id)
                    raise

                history.append(ConversationMessage.assistant(response_text))

                if self._audio_enabled(options) and response_text.strip():
                    synthesized = await self.synthesizer.synthesize(response_text, self._tts_options(options))
                    self._check_turn_interrupt(interrupt, session_id)
                    response_audio = synthesized.data
                    audio_media_type = synthesized.format.media_type
            finally:
                # 被打断或合成失败时历史同样保持在上限内
                trim_history(history, options.max_conversation_history)

        processing_time = time.perf_counter() - started
        logger.info(
            f"ConversationPipeline (Session: {session_id}) 单轮对话完成，耗时 {processing_time:.3f}s"
        )
        return ConversationTurn(
            user_text=user_text,
            response_text=response_text,
            response_audio=response_audio,
            audio_media_type=audio_media_type,
            processing_time=processing_time,
            model_id=self.generator.model_id,
        )

    async def converse(
        self,
        audio_chunks: AsyncIterable[bytes],
        options: Optional[ConversationOptions] = None,
        interrupt: Optional[InterruptManager] = None,
    ) -> AsyncGenerator[ConversationEvent, None]:
        """全双工流式对话

        Args:
            audio_chunks: 16-bit 单声道 PCM 音频块流
            options: 调用选项
            interrupt: 打断信号，在每个 await 之后、每次产出事件之前检查

        Yields:
            ConversationEvent，每个语音段内顺序为
            SpeechDetected -> [TranscriptionPartial...] -> TranscriptionComplete
            -> ResponseStarted -> ResponseTextChunk... -> [ResponseAudioChunk...]
            -> ResponseComplete
        """
        self._ensure_open()
        options = options or ConversationOptions()
        session_id = self._resolve_session_id(options)

        history = await self.session_store.get_or_create(session_id)
        lock = await self.session_store.lock_for(session_id)
        ctx = _ConverseContext(
            session_id=session_id,
            history=history,
            lock=lock,
            options=options,
            interrupt=interrupt,
            tts_options=self._tts_options(options),
            language=options.language or self.config.default_language,
        )

        async with lock:
            self._ensure_system_prompt(history, options)

        logger.info(f"ConversationPipeline (Session: {session_id}) 开始流式对话")
        try:
            if self.segmenter is None:
                events = self._converse_whole_input(audio_chunks, ctx)
            else:
                events = self._converse_segments(audio_chunks, ctx)
            async with aclosing(events):
                async for event in events:
                    yield event
        except _Interrupted:
            logger.info(f"ConversationPipeline (Session: {session_id}) 对话被打断")
            if options.enable_barge_in:
                yield InterruptedEvent(session_id=session_id)
            return

        logger.info(f"ConversationPipeline (Session: {session_id}) 流式对话结束")

    async def health_check(self) -> Dict[str, Any]:
        """检查各端口的就绪状态"""
        modules: Dict[str, Any] = {
            "asr": await self.transcriber.health_check(),
            "llm": await self.generator.health_check(),
        }
        if self.synthesizer is not None:
            modules["tts"] = await self.synthesizer.health_check()
        if self.segmenter is not None:
            modules["vad"] = await self.segmenter.model.health_check()

        all_ready = all(m.get("is_ready") for m in modules.values())
        if self._closed:
            status = "closed"
        else:
            status = "healthy" if all_ready else "degraded"
        return {"status": status, "modules": modules}

    async def close(self) -> None:
        """关闭管道；各端口由创建者负责关闭"""
        if self._closed:
            return
        self._closed = True
        logger.info("ConversationPipeline 已关闭")

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ==================== 流式处理 ====================

    async def _converse_whole_input(
        self,
        audio_chunks: AsyncIterable[bytes],
        ctx: _ConverseContext,
    ) -> AsyncGenerator[ConversationEvent, None]:
        """无分段器: 整个输入缓冲为一个语音段"""
        buffer = bytearray()
        async for chunk in audio_chunks:
            self._check_interrupt(ctx)
            buffer.extend(chunk)

        async with aclosing(self._process_segment(bytes(buffer), ctx)) as events:
            async for event in events:
                yield event
        self._check_consecutive_errors(ctx)

    async def _converse_segments(
        self,
        audio_chunks: AsyncIterable[bytes],
        ctx: _ConverseContext,
    ) -> AsyncGenerator[ConversationEvent, None]:
        segments = self.segmenter.detect_speech(audio_chunks, ctx.options.vad_options)
        async with aclosing(segments):
            async for segment in segments:
                self._check_interrupt(ctx)
                self._ensure_open()
                yield SpeechDetectedEvent(session_id=ctx.session_id, segment=segment)

                async with aclosing(self._process_segment(segment.audio_data, ctx)) as events:
                    async for event in events:
                        yield event
                self._check_consecutive_errors(ctx)

    async def _process_segment(
        self,
        audio: bytes,
        ctx: _ConverseContext,
    ) -> AsyncGenerator[ConversationEvent, None]:
        """处理单个语音段，持有会话锁直到本段结束"""
        ctx.segment_failed = False

        async with ctx.lock:
            user_message: Optional[ConversationMessage] = None
            try:
                # 1. 识别
                try:
                    if ctx.options.enable_partial_transcripts:
                        user_text = ""
                        stream = self.transcriber.transcribe_stream(audio, ctx.language)
                        async with aclosing(stream) as fragments:
                            async for fragment in fragments:
                                self._check_interrupt(ctx)
                                if fragment.is_final:
                                    user_text = fragment.text
                                elif not fragment.is_empty:
                                    user_text = fragment.text
                                    yield TranscriptionPartialEvent(session_id=ctx.session_id, text=fragment.text)
                    else:
                        user_text = await self.transcriber.transcribe(audio, ctx.language)
                except _PASSTHROUGH_ERRORS:
                    raise
                except Exception as e:
                    self._check_interrupt(ctx)
                    yield self._stage_error(ctx, "transcription", e)
                    return
                self._check_interrupt(ctx)

                yield TranscriptionCompleteEvent(session_id=ctx.session_id, text=user_text)
                if not user_text.strip():
                    logger.debug(f"ConversationPipeline (Session: {ctx.session_id}) 识别结果为空，继续监听")
                    ctx.consecutive_errors = 0
                    return

                # 2. 生成
                user_message = ConversationMessage.user(user_text)
                ctx.history.append(user_message)
                self._check_interrupt(ctx)
                yield ResponseStartedEvent(session_id=ctx.session_id)

                parts: List[str] = []
                try:
                    async with aclosing(self.generator.generate_stream(list(ctx.history))) as fragments:
                        async for fragment in fragments:
                            self._check_interrupt(ctx)
                            if not fragment:
                                continue
                            parts.append(fragment)
                            yield ResponseTextChunkEvent(session_id=ctx.session_id, text=fragment)
                except _PASSTHROUGH_ERRORS:
                    raise
                except Exception as e:
                    self._check_interrupt(ctx)
                    yield self._stage_error(ctx, "generation", e)
                    return

                response_text = "".join(parts)
                ctx.history.append(ConversationMessage.assistant(response_text))
                user_message = None

                # 3. 合成
                if self._audio_enabled(ctx.options) and response_text.strip():
                    try:
                        stream = self.synthesizer.synthesize_stream(response_text, ctx.tts_options)
                        async with aclosing(stream) as chunks:
                            async for chunk in chunks:
                                self._check_interrupt(ctx)
                                if not chunk.data:
                                    continue
                                yield ResponseAudioChunkEvent(session_id=ctx.session_id, audio=chunk)
                    except _PASSTHROUGH_ERRORS:
                        raise
                    except Exception as e:
                        self._check_interrupt(ctx)
                        yield self._stage_error(ctx, "synthesis", e)

                self._check_interrupt(ctx)
                yield ResponseCompleteEvent(session_id=ctx.session_id, text=response_text)
                if not ctx.segment_failed:
                    ctx.consecutive_errors = 0

            except (_Interrupted, asyncio.CancelledError, GeneratorExit):
                if user_message is not None:
                    self._rollback_user_message(ctx.history, user_message, ctx.session_id)
                raise

            finally:
                trim_history(ctx.history, ctx.options.max_conversation_history)

    # ==================== 辅助方法 ====================

    def _stage_error(self, ctx: _ConverseContext, stage: str, error: Exception) -> ErrorEvent:
        ctx.segment_failed = True
        ctx.consecutive_errors += 1
        logger.error(
            f"ConversationPipeline (Session: {ctx.session_id}) {stage} 阶段失败 "
            f"({ctx.consecutive_errors}/{self.config.max_consecutive_errors}): {error}",
            exc_info=True,
        )
        return ErrorEvent(
            session_id=ctx.session_id,
            message=str(error) or error.__class__.__name__,
            error_code=getattr(error, "error_code", error.__class__.__name__),
            stage=stage,
        )

    def _check_consecutive_errors(self, ctx: _ConverseContext) -> None:
        if ctx.consecutive_errors > self.config.max_consecutive_errors:
            raise PipelineExecutionError(
                f"连续 {ctx.consecutive_errors} 个语音段处理失败，终止对话流",
                details={"session_id": ctx.session_id},
            )

    @staticmethod
    def _check_interrupt(ctx: _ConverseContext) -> None:
        if ctx.interrupt is not None and ctx.interrupt.is_interrupted:
            raise _Interrupted()

    @staticmethod
    def _check_turn_interrupt(interrupt: Optional[InterruptManager], session_id: str) -> None:
        if interrupt is not None and interrupt.is_interrupted:
            logger.info(f"ConversationPipeline (Session: {session_id}) 单轮对话被打断")
            raise asyncio.CancelledError()

    @staticmethod
    def _rollback_user_message(
        history: List[ConversationMessage],
        user_message: ConversationMessage,
        session_id: str,
    ) -> None:
        """移除没有对应助手回复的用户消息"""
        for index in range(len(history) - 1, -1, -1):
            if history[index] is user_message:
                del history[index]
                logger.debug(f"ConversationPipeline (Session: {session_id}) 回滚未完成的用户消息")
                return

    def _ensure_open(self) -> None:
        if self._closed:
            raise ComponentClosedError("ConversationPipeline")

    def _resolve_session_id(self, options: ConversationOptions) -> str:
        return options.session_id or DEFAULT_SESSION_ID

    def _ensure_system_prompt(self, history: List[ConversationMessage], options: ConversationOptions) -> None:
        """空历史时写入系统提示词"""
        system_prompt = options.system_prompt or self.config.default_system_prompt
        if system_prompt is not None and not history:
            history.append(ConversationMessage.system(system_prompt))

    def _audio_enabled(self, options: ConversationOptions) -> bool:
        return options.enable_audio_response and self.synthesizer is not None

    def _tts_options(self, options: ConversationOptions) -> TextToSpeechOptions:
        return TextToSpeechOptions(
            voice_id=options.voice_id or self.config.default_voice_id,
            language=options.language or self.config.default_language,
        )

    @staticmethod
    async def _read_audio(audio: AudioInput) -> bytes:
        if isinstance(audio, (bytes, bytearray)):
            return bytes(audio)
        return await asyncio.to_thread(audio.read)
