"""
Validation models for what the language model sends back.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class ScannedTerm(BaseModel):
    """One glossary candidate returned by the terminology scan"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field("", description="Kebab-case slug ID for the term, e.g. 'argo-trading'")
    original_text: str = Field(..., alias="originalText", description="The exact text as it appears in the source")
    translation: str = Field("", description="Recommended translation, or empty if unsure")
    comment: Optional[str] = Field(None, description="Why this term needs consistent translation")

    @field_validator("translation", mode="before")
    @classmethod
    def _empty_translation(cls, value):
        return "" if value is None else value


class TranslatedEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="The entry ID, exactly as given")
    target_text: str = Field(..., alias="targetText", description="The translation, using ${{term-id}} for terms")

    @field_validator("id", mode="before")
    @classmethod
    def _numeric_id(cls, value):
        # Models often answer id="3" with a bare 3
        return str(value) if isinstance(value, int) else value


class TranslationBatchResult(BaseModel):
    translations: List[TranslatedEntry]


scanned_terms_adapter = TypeAdapter(List[ScannedTerm])
