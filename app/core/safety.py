from __future__ import annotations

import re
from dataclasses import dataclass

from app.core.types import SafetyVerdict


@dataclass(frozen=True, slots=True)
class SafetyRule:
    category: str
    pattern: re.Pattern[str]


DEFAULT_RULES: tuple[SafetyRule, ...] = (
    SafetyRule(
        "security attacks",
        re.compile(r"(exploit|backdoor|zero-day|ddos|botnet|ransomware)", re.IGNORECASE),
    ),
    SafetyRule(
        "weaponization content",
        re.compile(r"(bomb|weapon|firearm|munition|explosive)", re.IGNORECASE),
    ),
    SafetyRule(
        "self-harm support",
        re.compile(r"(self-harm|suicide|kill myself|end my life)", re.IGNORECASE),
    ),
    SafetyRule(
        "hate or discriminatory speech",
        re.compile(r"(hate speech|racial slur|ethnic slur|genocide)", re.IGNORECASE),
    ),
    SafetyRule(
        "impersonation or synthetic identity",
        re.compile(r"(deepfake|impersonat|fake identity)", re.IGNORECASE),
    ),
)

_ALLOWED = SafetyVerdict(blocked=False)


class SafetyFilter:
    """Policy backstop for offline backends, which have no moderation of their own."""

    def __init__(self, rules: tuple[SafetyRule, ...] = DEFAULT_RULES) -> None:
        self._rules = rules

    def check(self, prompt: object) -> SafetyVerdict:
        if not isinstance(prompt, str) or not prompt.strip():
            return _ALLOWED

        for rule in self._rules:
            if rule.pattern.search(prompt):
                return SafetyVerdict(
                    blocked=True,
                    category=rule.category,
                    message=(
                        "I can't help with that request because it violates the "
                        f"{rule.category} policy. Please rephrase it so it stays safe."
                    ),
                )

        return _ALLOWED
