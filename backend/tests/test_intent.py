"""
Unit tests for the keyword intent classifier.
"""
import pytest

from flowbot.services.assistant.intent import (
    IntentClassifier,
    IntentRule,
    keyword_pattern,
)
from flowbot.services.assistant.schema import Route


@pytest.fixture
def classifier():
    return IntentClassifier()


@pytest.mark.parametrize(
    "message",
    [
        "Create a logo for my bakery",
        "Draw me a cat",
        "Can you make a PICTURE of a sunset?",
        "I need some product photos",
        "design a flyer",
    ],
)
def test_image_keywords_route_to_image(classifier, message):
    assert classifier.classify(message) == Route.IMAGE


@pytest.mark.parametrize(
    "message",
    [
        "Build a spreadsheet of my expenses",
        "Put this in a table",
        "Please sort data by date",
        "Export these columns to CSV",
        "Run a data analysis on sales",
    ],
)
def test_data_keywords_route_to_data(classifier, message):
    assert classifier.classify(message) == Route.DATA


def test_image_takes_precedence_over_data(classifier):
    """A message matching both keyword sets always goes to the image strategy."""
    message = "Draw a chart image from this spreadsheet table"
    assert classifier.data_predicate_fired(message)
    assert classifier.classify(message) == Route.IMAGE


def test_image_takes_precedence_over_file_content(classifier):
    assert classifier.classify("make a picture of this", file_content_present=True) == Route.IMAGE


def test_file_content_alone_routes_to_data(classifier):
    assert classifier.classify("", file_content_present=True) == Route.DATA
    assert classifier.classify(None, file_content_present=True) == Route.DATA


def test_default_is_general(classifier):
    assert classifier.classify("What's a good name for a bakery?") == Route.GENERAL
    assert classifier.classify(None) == Route.GENERAL


def test_keywords_match_at_word_start_only(classifier):
    # "table" inside "vegetable" and "draw" inside "withdraw" are not keywords
    assert classifier.classify("list some vegetable recipes") == Route.GENERAL
    assert classifier.classify("how do I withdraw money") == Route.GENERAL
    # but plural and inflected forms still match
    assert classifier.classify("three logos please") == Route.IMAGE


def test_custom_rule_order_is_respected():
    rules = [
        IntentRule("data-first", lambda item: "csv" in item.text, Route.DATA),
        IntentRule("image", lambda item: "image" in item.text, Route.IMAGE),
    ]
    classifier = IntentClassifier(rules=rules)
    assert classifier.classify("image from csv") == Route.DATA
    # No rule matched: falls back to general
    assert classifier.classify("hello") == Route.GENERAL


def test_keyword_pattern_prefers_longest_alternative():
    pattern = keyword_pattern(["sort", "sort data"])
    assert pattern.search("please sort data").group(0) == "sort data"
