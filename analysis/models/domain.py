"""DTO/스키마: LLM 분류/편집 출력 정의.

Pydantic v2 기반의 명확한 스키마로 LLM 출력을 정규화한다. 필드는
snake_case와 camelCase 키를 모두 받는다.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class RelevanceCheck(BaseModel):
    """관련성 분류 결과."""

    is_relevant: bool = Field(..., validation_alias=AliasChoices("is_relevant", "isRelevant"))
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""


class SimilarityCheck(BaseModel):
    """중복(유사) 분류 결과. similar_to_index는 후보 목록의 1-based 번호."""

    is_similar: bool = Field(..., validation_alias=AliasChoices("is_similar", "isSimilar"))
    confidence: float = Field(..., ge=0.0, le=1.0)
    similar_to_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("similar_to_index", "similarToIndex"),
    )
    reason: str = ""


class EnhancedContent(BaseModel):
    """편집(enhancement) 결과."""

    headline: str = Field(..., max_length=200)
    summary: str
    body: str
    tags: List[str] = Field(default_factory=list)
    reason: str = ""

    @field_validator("headline", "summary", "body")
    @classmethod
    def _strip_nonempty(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("필드는 공백일 수 없습니다.")
        return s

    @field_validator("tags")
    @classmethod
    def _tags_cleanup(cls, v: List[str]) -> List[str]:
        cleaned: List[str] = []
        for tag in v:
            s = (tag or "").strip().lstrip("#").lower().replace(" ", "")
            if not s or s in cleaned:
                continue
            cleaned.append(s)
            if len(cleaned) >= 10:
                break
        return cleaned
