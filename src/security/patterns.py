"""Registry of suspicious-content signatures.

Each signature is a (name, category, severity, regex) tuple. The registry is
data, not control flow: adding a signature never touches pipeline logic.
Order only matters for speed, so cheap anchored/literal patterns come first
and the backtracking-prone repetition checks come last.
"""

import re
from dataclasses import dataclass

HIGH = "high"
MEDIUM = "medium"


@dataclass(frozen=True)
class Signature:
    """A single named pattern with its category and severity."""

    name: str
    category: str
    severity: str
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _sig(name: str, category: str, severity: str, regex: str, flags: int = re.IGNORECASE) -> Signature:
    return Signature(name=name, category=category, severity=severity, pattern=re.compile(regex, flags))


DEFAULT_SIGNATURES: tuple[Signature, ...] = (
    # ── Script / markup injection ────────────────────────────────────
    _sig("script_tag", "script_injection", HIGH, r"<\s*script\b"),
    _sig("javascript_uri", "script_injection", HIGH, r"javascript\s*:"),
    _sig("data_html_uri", "script_injection", HIGH, r"data\s*:\s*text/html"),
    _sig("eval_call", "script_injection", HIGH, r"\beval\s*\("),
    _sig("function_literal", "script_injection", HIGH, r"\bfunction\s*\("),
    _sig("iframe_tag", "xss", HIGH, r"<\s*iframe\b"),
    _sig("object_tag", "xss", HIGH, r"<\s*object\b"),
    _sig("embed_tag", "xss", HIGH, r"<\s*embed\b"),
    _sig("event_handler_attr", "xss", HIGH, r"<[^>]*\bon\w+\s*="),
    # ── SQL injection ────────────────────────────────────────────────
    _sig("union_select", "sql_injection", HIGH, r"\bunion\s+(all\s+)?select\b"),
    _sig("drop_table", "sql_injection", HIGH, r"\bdrop\s+table\b"),
    _sig("delete_from", "sql_injection", HIGH, r"\bdelete\s+from\b"),
    _sig("tautology", "sql_injection", HIGH, r"'\s*or\s+'?1'?\s*=\s*'?1"),
    # ── Prompt injection / role override ─────────────────────────────
    _sig(
        "ignore_instructions", "prompt_injection", HIGH,
        r"ignore\s+(all\s+)?(previous|above|all|prior)\s+(instructions?|prompts?|rules?|commands?)",
    ),
    _sig("forget_everything", "prompt_injection", HIGH, r"forget\s+(everything|all|previous|prior)"),
    _sig("persona_switch", "prompt_injection", HIGH, r"you\s+are\s+now\s+an?\s*(different|new)"),
    _sig(
        "override_instructions", "prompt_injection", HIGH,
        r"override\s+(previous|all|your)\s+(instructions?|commands?|rules?)",
    ),
    _sig("disregard_previous", "prompt_injection", HIGH, r"disregard\s+(all\s+)?(previous|all|above|prior)"),
    _sig("role_marker", "prompt_injection", HIGH, r"(^|\n)\s*(system|assistant|human)\s*:", re.IGNORECASE),
    # ── System prompt extraction ─────────────────────────────────────
    _sig(
        "reveal_system_prompt", "prompt_extraction", HIGH,
        r"(tell|show|reveal|print|repeat)\s+(me\s+)?(your|the)\s+(system\s+)?prompt",
    ),
    _sig(
        "ask_system_prompt", "prompt_extraction", HIGH,
        r"what\s+(is|are)\s+(your|the)\s+(system\s+)?(prompt|instructions)",
    ),
    # ── Known spam / test phrases ────────────────────────────────────
    _sig("lorem_ipsum", "spam", MEDIUM, r"lorem\s+ipsum\s+dolor"),
    _sig("keyboard_mash", "spam", MEDIUM, r"^\s*(asdf|qwerty|test)(\s*(asdf|qwerty|test))*\s*$"),
    _sig("promo_spam", "spam", MEDIUM, r"\b(buy\s+now|click\s+here|free\s+money|casino\s+bonus)\b"),
    # ── Pathological repetition ──────────────────────────────────────
    _sig("repeated_char", "repetition", MEDIUM, r"(.)\1{50,}", re.DOTALL),
    _sig("oversized_token", "repetition", MEDIUM, r"\w{200,}", 0),
)


class PatternRegistry:
    """Ordered, first-match signature catalog."""

    def __init__(self, signatures: tuple[Signature, ...] | list[Signature] = DEFAULT_SIGNATURES):
        self._signatures: list[Signature] = list(signatures)

    def register(self, signature: Signature) -> None:
        """Append a signature to the end of the catalog."""
        self._signatures.append(signature)

    def classify(self, text: str) -> Signature | None:
        """Return the first matching signature, or None for clean text."""
        if not text:
            return None
        for signature in self._signatures:
            if signature.matches(text):
                return signature
        return None

    def __len__(self) -> int:
        return len(self._signatures)

    def __iter__(self):
        return iter(self._signatures)
