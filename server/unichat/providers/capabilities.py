"""Capability inference from model identifiers.

Vendors rarely report context size, knowledge cutoff or vision support in
their model listings, so these are derived from substrings of the model id.
Every field is an ordered rule table per vendor: the first matching rule
wins, and the table default applies when nothing matches. Vendors without a
table for a field use the global default.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from unichat.schemas.provider import ModelDescriptor

CONTAINS = "contains"
EQUALS = "equals"
CONTAINS_NOCASE = "contains_nocase"


@dataclass(frozen=True)
class Rule:
    patterns: Tuple[str, ...]
    value: Any
    match: str = CONTAINS

    def matches(self, model_id: str) -> bool:
        if self.match == EQUALS:
            return model_id in self.patterns
        if self.match == CONTAINS_NOCASE:
            lowered = model_id.lower()
            return any(p in lowered for p in self.patterns)
        return any(p in model_id for p in self.patterns)


@dataclass(frozen=True)
class RuleTable:
    rules: Tuple[Rule, ...]
    default: Any

    def resolve(self, model_id: str) -> Any:
        for rule in self.rules:
            if rule.matches(model_id):
                return rule.value
        return self.default


def _table(default: Any, *rules: Tuple[Any, ...]) -> RuleTable:
    # rules are (value, pattern, pattern, ...) or (value, match, (patterns...))
    built = []
    for rule in rules:
        if len(rule) == 3 and isinstance(rule[2], tuple):
            built.append(Rule(patterns=rule[2], value=rule[0], match=rule[1]))
        else:
            built.append(Rule(patterns=tuple(rule[1:]), value=rule[0]))
    return RuleTable(rules=tuple(built), default=default)


DEFAULT_CONTEXT_WINDOW = 4096
DEFAULT_KNOWLEDGE_CUTOFF = "10/2023"


@dataclass(frozen=True)
class CapabilityTable:
    context_window: RuleTable = field(default_factory=lambda: _table(DEFAULT_CONTEXT_WINDOW))
    knowledge_cutoff: RuleTable = field(default_factory=lambda: _table(DEFAULT_KNOWLEDGE_CUTOFF))
    image_support: RuleTable = field(default_factory=lambda: _table(False))
    preferred: RuleTable = field(default_factory=lambda: _table(False))
    deprecated: RuleTable = field(default_factory=lambda: _table(False))


CAPABILITY_TABLES: Dict[str, CapabilityTable] = {
    "openai": CapabilityTable(
        context_window=_table(
            DEFAULT_CONTEXT_WINDOW,
            (1_000_000, "gpt-5"),
            (1_000_000, "gpt-4.1"),
            (128_000, "o4-mini"),
            (128_000, "o3"),
            (128_000, "gpt-4o", "gpt-4-turbo"),
            (32_768, "gpt-4-32k"),
            (8_192, "gpt-4"),
            (16_385, "gpt-3.5-turbo-16k"),
            (4_096, "gpt-3.5-turbo"),
            (128_000, "o1"),
        ),
        knowledge_cutoff=_table(
            DEFAULT_KNOWLEDGE_CUTOFF,
            ("6/2024", "gpt-5"),
            ("6/2024", "o4-mini", "o3"),
            ("6/2024", "gpt-4.1", "2025"),
            ("10/2023", "gpt-4o", "o1", "2024"),
            ("12/2023", "gpt-4-turbo", "0125"),
            ("4/2023", "gpt-4-1106", "1106"),
            ("9/2021", "gpt-4"),
            ("9/2021", "gpt-3.5"),
        ),
        image_support=_table(
            False,
            (True, "gpt-5", "gpt-4o", "gpt-4.1", "gpt-4-turbo", "gpt-4-vision",
             "chatgpt-4o", "gpt-4-1106-vision", "o3", "o4-mini"),
        ),
        preferred=_table(
            False,
            (True, "gpt-5", "o3", "o4-mini", "gpt-4.1", "gpt-4o", "chatgpt-4o-latest"),
        ),
        deprecated=_table(
            False,
            (True, "instruct", "davinci", "curie", "babbage", "ada",
             "gpt-4-32k", "gpt-3.5-turbo-16k", "preview-2024-09-12"),
        ),
    ),
    "xai": CapabilityTable(
        context_window=_table(131_072),
        knowledge_cutoff=_table(
            "10/2023",
            ("6/2024", "grok-4"),
            ("6/2024", "grok-3"),
            ("12/2024", "grok-2-1212"),
        ),
        image_support=_table(False, (True, "grok-4", "grok-3", "grok-2-vision", "grok-2-image")),
        preferred=_table(False, (True, EQUALS, ("grok-4-0709", "grok-3", "grok-3-fast"))),
    ),
    "anthropic": CapabilityTable(
        context_window=_table(100_000, (200_000, "claude-3-5"), (200_000, "claude-3")),
        knowledge_cutoff=_table("9/2021", ("4/2024", "claude-3-5"), ("8/2023", "claude-3")),
        image_support=_table(False, (True, "claude-3", "claude-3-5")),
        preferred=_table(False, (True, "claude-3-5-sonnet")),
    ),
    "deepseek": CapabilityTable(
        context_window=_table(32_000, (128_000, "deepseek-r1"), (128_000, "deepseek-v3")),
        preferred=_table(False, (True, "deepseek-r1", "deepseek-v3")),
    ),
    "gemini": CapabilityTable(
        context_window=_table(
            8_192,
            (2_000_000, "gemini-1.5-pro"),
            (1_048_576, "gemini-1.5-flash"),
            (30_720, "gemini-pro"),
        ),
        knowledge_cutoff=_table("4/2024", ("4/2024", "1.5")),
        image_support=_table(False, (True, "pro", "flash")),
        preferred=_table(False, (True, "1.5-pro", "1.5-flash")),
    ),
    "together": CapabilityTable(
        context_window=_table(
            4_096,
            (4_096, "llama-2-70b"),
            (4_096, "llama-2-13b"),
            (32_768, "mixtral-8x7b"),
            (65_536, "mixtral-8x22b"),
            (8_192, "llama-3-70b"),
            (8_192, "llama-3-8b"),
            (32_768, "qwen"),
        ),
        knowledge_cutoff=_table(
            "9/2023",
            ("4/2024", "2024"),
            ("9/2023", "2023"),
            ("4/2024", "llama-3"),
            ("12/2023", "mixtral"),
        ),
        image_support=_table(False, (True, CONTAINS_NOCASE, ("llava", "llava-next"))),
        preferred=_table(False, (True, "llama-3-70b", "mixtral-8x22b", "qwen2-72b")),
    ),
    "ollama": CapabilityTable(
        context_window=_table(
            4_096,
            (8_192, "llama3:70b"),
            (8_192, "llama3:8b"),
            (4_096, "llama2:70b"),
            (4_096, "llama2:13b"),
            (4_096, "llama2:7b"),
            (32_768, "mixtral:8x7b"),
            (32_768, "qwen"),
        ),
        knowledge_cutoff=_table("9/2023", ("4/2024", "llama3"), ("9/2023", "llama2")),
        image_support=_table(False, (True, CONTAINS_NOCASE, ("llava", "bakllava"))),
        preferred=_table(False, (True, "llama3:70b", "llama3:8b")),
    ),
}

_GLOBAL_DEFAULTS = CapabilityTable()


def capability_table(vendor: str) -> CapabilityTable:
    return CAPABILITY_TABLES.get(vendor, _GLOBAL_DEFAULTS)


def infer_context_window(vendor: str, model_id: str) -> int:
    return capability_table(vendor).context_window.resolve(model_id)


def infer_knowledge_cutoff(vendor: str, model_id: str) -> str:
    return capability_table(vendor).knowledge_cutoff.resolve(model_id)


def infer_image_support(vendor: str, model_id: str, capabilities: Optional[Mapping[str, Any]] = None) -> bool:
    if capabilities and (capabilities.get("vision") or capabilities.get("multimodal")):
        return True
    return capability_table(vendor).image_support.resolve(model_id)


def infer_preferred(vendor: str, model_id: str) -> bool:
    return capability_table(vendor).preferred.resolve(model_id)


def infer_deprecated(vendor: str, model_id: str) -> bool:
    return capability_table(vendor).deprecated.resolve(model_id)


def describe_model(vendor: str, model_id: str, listed: Optional[Mapping[str, Any]] = None) -> ModelDescriptor:
    """Build a descriptor for `model_id`, preferring fields from the vendor listing."""
    listed = listed or {}
    context_window = listed.get("context_length") or listed.get("max_tokens") or infer_context_window(vendor, model_id)
    capabilities = listed.get("capabilities")
    if not isinstance(capabilities, Mapping):
        capabilities = None
    return ModelDescriptor(
        id=model_id,
        name=model_id,
        provider=vendor,
        context_window=int(context_window),
        knowledge_cutoff=listed.get("knowledge_cutoff") or infer_knowledge_cutoff(vendor, model_id),
        image_support=infer_image_support(vendor, model_id, capabilities),
        preferred=infer_preferred(vendor, model_id),
        deprecated=bool(listed.get("deprecated")) or infer_deprecated(vendor, model_id),
    )
