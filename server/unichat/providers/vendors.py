"""Per-vendor configuration records.

Vendors differ only in data: endpoint, display name, whether they accept
multi-part message content, whether they offer text-to-speech, and the
hand-curated model list used when live listing fails.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple

from unichat.schemas.provider import ModelDescriptor


@dataclass(frozen=True)
class VendorProfile:
    name: str
    display_name: str
    default_base_url: str
    flat_content: bool = False
    supports_speech: bool = False
    fallback_models: Tuple[ModelDescriptor, ...] = ()


def _model(vendor: str, model_id: str, name: str, context_window: int, cutoff: str,
           image_support: bool = False, preferred: bool = False) -> ModelDescriptor:
    return ModelDescriptor(
        id=model_id,
        name=name,
        provider=vendor,
        context_window=context_window,
        knowledge_cutoff=cutoff,
        image_support=image_support,
        preferred=preferred,
        deprecated=False,
    )


OPENAI = VendorProfile(
    name="openai",
    display_name="OpenAI",
    default_base_url="https://api.openai.com",
    supports_speech=True,
    fallback_models=(
        _model("openai", "gpt-5", "GPT-5", 1_000_000, "6/2024", image_support=True, preferred=True),
        _model("openai", "gpt-4o", "GPT-4o", 128_000, "10/2023", image_support=True),
        _model("openai", "gpt-3.5-turbo", "GPT-3.5 Turbo", 4_096, "9/2021"),
    ),
)

XAI = VendorProfile(
    name="xai",
    display_name="xAI (Grok)",
    default_base_url="https://api.x.ai",
    fallback_models=(
        _model("xai", "grok-4-0709", "Grok-4 (July 2024)", 131_072, "6/2024", image_support=True, preferred=True),
        _model("xai", "grok-3", "Grok-3", 131_072, "6/2024", image_support=True, preferred=True),
    ),
)

ANTHROPIC = VendorProfile(
    name="anthropic",
    display_name="Anthropic (Claude)",
    default_base_url="https://api.anthropic.com",
    fallback_models=(
        _model("anthropic", "claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", 200_000, "4/2024",
               image_support=True, preferred=True),
    ),
)

OLLAMA = VendorProfile(
    name="ollama",
    display_name="Ollama (Local)",
    default_base_url="http://localhost:11434",
    flat_content=True,
    fallback_models=(
        _model("ollama", "llama3:8b", "Llama 3 8B", 8_192, "4/2024", preferred=True),
        _model("ollama", "llama2:7b", "Llama 2 7B", 4_096, "9/2023"),
    ),
)

TOGETHER = VendorProfile(
    name="together",
    display_name="Together AI",
    default_base_url="https://api.together.xyz",
    flat_content=True,
    fallback_models=(
        _model("together", "meta-llama/Llama-3-70b-chat-hf", "Llama 3 70B Chat", 8_192, "4/2024", preferred=True),
        _model("together", "mistralai/Mixtral-8x7B-Instruct-v0.1", "Mixtral 8x7B Instruct", 32_768, "12/2023"),
    ),
)

GEMINI = VendorProfile(
    name="gemini",
    display_name="Google Gemini",
    default_base_url="https://generativelanguage.googleapis.com/v1beta/openai",
    fallback_models=(
        _model("gemini", "gemini-1.5-pro", "Gemini 1.5 Pro", 2_000_000, "4/2024", image_support=True, preferred=True),
        _model("gemini", "gemini-1.5-flash", "Gemini 1.5 Flash", 1_048_576, "4/2024", image_support=True, preferred=True),
        _model("gemini", "gemini-pro", "Gemini Pro", 30_720, "4/2024", image_support=True),
    ),
)

DEEPSEEK = VendorProfile(
    name="deepseek",
    display_name="DeepSeek",
    default_base_url="https://api.deepseek.com",
    flat_content=True,
    fallback_models=(
        _model("deepseek", "deepseek-r1", "DeepSeek R1", 128_000, "6/2024", preferred=True),
    ),
)

# Registration order of the default registry
VENDORS: Dict[str, VendorProfile] = {
    profile.name: profile
    for profile in (OPENAI, XAI, ANTHROPIC, OLLAMA, TOGETHER, GEMINI, DEEPSEEK)
}

SPEECH_MODELS: Tuple[Tuple[str, str, bool], ...] = (
    ("tts-1", "TTS-1", True),
    ("tts-1-hd", "TTS-1 HD", False),
)
