"""Translator Tool (simulated; the text is tagged, not translated)."""

import logging

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class TranslatorInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(description="Text to translate")
    target_language: str = Field(
        alias="targetLanguage",
        description='Target language, e.g. "Spanish" or "French"',
    )


def translate(text: str, target_language: str) -> dict:
    return {
        "original": text,
        "translated": f"[Translation to {target_language}]: {text}",
        "targetLanguage": target_language,
    }


def _handle_translate(params: TranslatorInput) -> dict:
    logger.info("Translating to %s: %r", params.target_language, params.text[:50])
    return translate(params.text, params.target_language)


def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="translator",
        description="Translate text to different languages.",
        input_model=TranslatorInput,
        handler=_handle_translate,
    )


_register()
