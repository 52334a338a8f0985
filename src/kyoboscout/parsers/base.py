"""Shared parser helpers."""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TypeVar

from kyoboscout.log import get_logger
from kyoboscout.text import special_char_ratio

from .dom import HtmlDocument

T = TypeVar("T")

REPEATED_CHARACTER = re.compile(r"(.)\1{5,}")
HTML_TAG = re.compile(r"<[^>]+>")


@dataclass
class TextQuality:
    """Heuristic quality assessment of extracted text."""

    is_valid: bool
    score: int
    issues: list[str] = field(default_factory=list)


def first_success(strategies: Iterable[Callable[[], T | None]]) -> T | None:
    """Run strategies in order and return the first truthy result.

    Strategies are zero-argument callables, so later (often more expensive)
    ones only run when the earlier ones come up empty.
    """
    for strategy in strategies:
        result = strategy()
        if result:
            return result
    return None


def extract_by_pattern(text: str | None, pattern: re.Pattern) -> str:
    """Return the first capture group of pattern in text, or ''."""
    if not text:
        return ""
    match = pattern.search(text)
    if not match:
        return ""
    return (match.group(1) or "").strip()


def assess_text_quality(text: str | None, max_length: int = 1000) -> TextQuality:
    """Score extracted text, starting from 100 and deducting per issue.

    Text scoring 50 or more is considered valid.
    """
    if not text or not text.strip():
        return TextQuality(is_valid=False, score=0, issues=["Empty text"])

    issues = []
    score = 100
    if len(text) < 2:
        issues.append("Too short")
        score -= 50
    if len(text) > max_length:
        issues.append("Too long")
        score -= 20
    if special_char_ratio(text) > 0.3:
        issues.append("Too many special characters")
        score -= 30
    if REPEATED_CHARACTER.search(text):
        issues.append("Repeated characters")
        score -= 20
    if HTML_TAG.search(text):
        issues.append("Contains HTML tags")
        score -= 40

    return TextQuality(is_valid=score >= 50, score=max(0, score), issues=issues)


class BaseParser(ABC):
    """Abstract base class for page parsers."""

    name: str = "parser"

    def __init__(self, html: str, logger: logging.Logger | None = None) -> None:
        self.doc = HtmlDocument(html)
        self.logger = logger or get_logger(f"parsers.{self.name}")

    @abstractmethod
    def parse(self, *args, **kwargs):
        """Parse the document."""
        ...

    def text_of_first(self, selectors: Iterable[str], root=None) -> str:
        """Text of the first element matched by any selector."""
        return self.doc.text(self.doc.first_by_selectors(selectors, root))
