"""
Keyword intent classifier.

Routes a chat message to a generation strategy with an explicit, ordered list
of (predicate, route) rules. Rules are evaluated top-down and the first match
wins, so the image rule always takes precedence over the data rule.
"""
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from flowbot.core.logging import get_logger
from flowbot.services.assistant.schema import Route

logger = get_logger(__name__)

IMAGE_KEYWORDS = (
    "image",
    "picture",
    "photo",
    "draw",
    "illustration",
    "logo",
    "graphic",
    "design",
    "visual",
)

DATA_KEYWORDS = (
    "spreadsheet",
    "table",
    "sort data",
    "columns",
    "csv",
    "data analysis",
)


def keyword_pattern(keywords: Iterable[str]) -> "re.Pattern[str]":
    """
    Compile keywords into one pattern anchored at word starts.

    "logo" matches "logos" and "logo,", but "table" does not match "vegetable".
    """
    alternatives = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})")


@dataclass(frozen=True)
class ClassificationInput:
    """Lower-cased message text plus whether file text was loaded."""

    text: str
    file_content_present: bool = False


@dataclass(frozen=True)
class IntentRule:
    name: str
    predicate: Callable[[ClassificationInput], bool]
    route: Route


_IMAGE_PATTERN = keyword_pattern(IMAGE_KEYWORDS)
_DATA_PATTERN = keyword_pattern(DATA_KEYWORDS)


def mentions_image(item: ClassificationInput) -> bool:
    return bool(_IMAGE_PATTERN.search(item.text))


def mentions_data(item: ClassificationInput) -> bool:
    return bool(_DATA_PATTERN.search(item.text))


def is_data_request(item: ClassificationInput) -> bool:
    return mentions_data(item) or item.file_content_present


DEFAULT_RULES: Sequence[IntentRule] = (
    IntentRule("image", mentions_image, Route.IMAGE),
    IntentRule("data", is_data_request, Route.DATA),
    IntentRule("general", lambda _: True, Route.GENERAL),
)


class IntentClassifier:
    """Maps a message (and the presence of file text) to a Route."""

    def __init__(self, rules: Optional[Sequence[IntentRule]] = None):
        self.rules: List[IntentRule] = list(rules or DEFAULT_RULES)

    def classify(self, message: Optional[str], file_content_present: bool = False) -> Route:
        item = ClassificationInput(
            text=(message or "").lower(),
            file_content_present=file_content_present,
        )
        for rule in self.rules:
            if rule.predicate(item):
                logger.debug("intent_rule_matched", rule=rule.name, route=rule.route.value)
                return rule.route
        return Route.GENERAL

    def data_predicate_fired(self, message: Optional[str], file_content_present: bool = False) -> bool:
        """Whether the data rule would match, regardless of precedence."""
        return is_data_request(
            ClassificationInput(text=(message or "").lower(), file_content_present=file_content_present)
        )
