"""识别文本片段"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class TextData(BaseModel):
    """ASR 流式识别产出的一个文本片段

    非最终片段的 text 是到目前为止的完整假设（不是增量），
    is_final=True 的片段是该语音段的最终结果，之后不再产出片段。
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., max_length=100000)
    is_final: bool = False
    language: Optional[str] = Field(None, pattern=r"^[a-z]{2}(-[A-Z]{2})?$")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()

    def __str__(self) -> str:
        preview = self.text if len(self.text) <= 50 else self.text[:50] + "..."
        marker = "final" if self.is_final else "partial"
        return f"TextData[{marker}]('{preview}')"
