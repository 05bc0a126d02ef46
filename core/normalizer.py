"""
normalizer.py
--------------
Recipient name normalization.

Bank exports describe the same merchant in many ways:

    "KORTKÖP NETFLIX COM /24-01-15"
    "NETFLIX COM /24-02-15"
    "Netflix Com 4411"

The normalizer strips bank-rail prefixes and trailing reference noise, then
title-cases the remainder so all three collapse to the key "Netflix Com".

Rules are declarative rows from config.yaml (recipient_normalization) and are
applied by a single interpreter, apply_rules(), so every rule can be tested
on its own.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List

from config.config_loader import get_normalization_rules


PREFIX = "prefix"
SUFFIX = "suffix"

_WHITESPACE_RUN = re.compile(r"\s+")
_WORD_BOUNDARIES = frozenset(" -/")


@dataclass(frozen=True)
class NormalizationRule:
    """A single (pattern, action) row. The action is "replace with replacement"."""

    name: str
    stage: str                       # "prefix" | "suffix"
    pattern: re.Pattern
    replacement: str = ""

    @classmethod
    def from_config(cls, entry: dict, stage: str) -> "NormalizationRule":
        flags = re.IGNORECASE if entry.get("ignore_case", False) else 0
        return cls(
            name=entry["name"],
            stage=stage,
            pattern=re.compile(entry["pattern"], flags),
            replacement=entry.get("replacement", ""),
        )

    def apply(self, text: str) -> str:
        """Applies the rule at most once."""
        return self.pattern.sub(self.replacement, text, count=1)


def apply_rules(text: str, rules: Iterable[NormalizationRule]) -> str:
    """Applies each rule once, in order."""
    for rule in rules:
        text = rule.apply(text)
    return text


def title_case(text: str) -> str:
    """
    Title-cases text using only space, hyphen and slash as word boundaries.

    str.title() also breaks on apostrophes and digits ("Mcdonald'S"), so the
    scan is done by hand. upper()/lower() are Unicode aware, which keeps
    letters such as å, ä, ö and é intact.
    """
    result = []
    capitalize_next = True
    for char in text.lower():
        if char in _WORD_BOUNDARIES:
            result.append(char)
            capitalize_next = True
        elif capitalize_next:
            result.append(char.upper())
            capitalize_next = False
        else:
            result.append(char)
    return "".join(result)


class RecipientNameNormalizer:
    """
    Turns a free-text description into a canonical merchant key.

    Usage:
        normalizer = RecipientNameNormalizer()
        normalizer.normalize("AUTOGIRO SPOTIFY AB 2024-01-15")  # "Spotify Ab"
    """

    def __init__(self, rules: List[NormalizationRule] | None = None):
        if rules is None:
            rules = load_rules()
        self.prefix_rules = [r for r in rules if r.stage == PREFIX]
        self.suffix_rules = [r for r in rules if r.stage == SUFFIX]

    def normalize(self, description: str) -> str:
        original = description.strip()

        normalized = apply_rules(original, self.prefix_rules)
        normalized = apply_rules(normalized, self.suffix_rules).strip()
        normalized = _WHITESPACE_RUN.sub(" ", normalized)
        normalized = title_case(normalized)

        return normalized or original


def load_rules() -> List[NormalizationRule]:
    """Compiles the prefix and suffix rules from config, preserving order."""
    config = get_normalization_rules()
    rules = [NormalizationRule.from_config(e, PREFIX) for e in config.get("prefix_rules", [])]
    rules += [NormalizationRule.from_config(e, SUFFIX) for e in config.get("suffix_rules", [])]
    return rules


_default_normalizer: RecipientNameNormalizer | None = None


def normalize_recipient_name(description: str) -> str:
    """Module-level shortcut using rules from config.yaml."""
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = RecipientNameNormalizer()
    return _default_normalizer.normalize(description)
