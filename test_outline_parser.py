"""
Tests for outline decoding and schema validation.
"""

import json

import pytest

from conftest import outline_document, outline_json
from improv_deck.core.exceptions import OutlineParseError, ParseFailureKind
from improv_deck.core.models import ImageSlide, TitleSlide
from improv_deck.core.outline_parser import parse_outline


def test_valid_outline_keeps_slide_order_and_variants():
    outline = parse_outline(outline_json(image_count=3, title_slides=1), topic="Moon Cheese")

    assert outline.topic == "Moon Cheese"
    assert isinstance(outline.slides[0], TitleSlide)
    assert outline.slides[0].presenter.name == "Dr. Banana"
    assert [index for index, _ in outline.image_slides()] == [1, 2, 3]
    assert outline.image_slides()[0][1].image.description == "picture 1"


def test_top_level_title_and_presenter_are_optional():
    document = outline_document(image_count=1)
    document["title"] = {"content": "Bananas Considered Harmful"}
    document["presenter"] = {"name": "Ada", "title": "Professor of Peels"}

    outline = parse_outline(json.dumps(document))

    assert outline.title.content == "Bananas Considered Harmful"
    assert outline.presenter.title == "Professor of Peels"


def test_non_json_is_malformed():
    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline("not json")

    assert exc_info.value.kind is ParseFailureKind.MALFORMED_JSON
    assert exc_info.value.raw_output == "not json"


def test_prose_around_json_is_not_stripped():
    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline("Here is your deck:\n" + outline_json())

    assert exc_info.value.kind is ParseFailureKind.MALFORMED_JSON


def test_deeply_nested_input_is_malformed():
    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline("[" * 100000)

    assert exc_info.value.kind is ParseFailureKind.MALFORMED_JSON


def test_unknown_slide_shape_is_schema_violation():
    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline('{"slides":[{"foo":1}]}')

    assert exc_info.value.kind is ParseFailureKind.SCHEMA_VIOLATION
    assert exc_info.value.details


@pytest.mark.parametrize("raw", [
    '[{"image": {"description": "x"}}]',
    '{"slides": []}',
    '{"title": {"content": "no slides"}}',
    '{"slides": [{"image": {}}]}',
    '{"slides": [{"title": {"content": "Hi"}}, {"image": {"description": "x"}}]}',
])
def test_shape_errors_are_schema_violations(raw):
    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline(raw)

    assert exc_info.value.kind is ParseFailureKind.SCHEMA_VIOLATION


def test_slide_with_both_variants_is_rejected():
    raw = json.dumps({"slides": [{
        "image": {"description": "x"},
        "title": {"content": "Hi"},
    }]})

    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline(raw)

    assert exc_info.value.kind is ParseFailureKind.SCHEMA_VIOLATION


def test_too_many_title_slides_is_schema_violation():
    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline(outline_json(image_count=1, title_slides=3), max_title_slides=2)

    assert exc_info.value.kind is ParseFailureKind.SCHEMA_VIOLATION
    assert any("title slides" in detail for detail in exc_info.value.details)


def test_closing_slide_must_be_an_image():
    document = outline_document(image_count=2)
    document["slides"].append(outline_document(title_slides=1, image_count=0)["slides"][0])

    with pytest.raises(OutlineParseError) as exc_info:
        parse_outline(json.dumps(document))

    assert exc_info.value.kind is ParseFailureKind.SCHEMA_VIOLATION
    assert any("closing slide" in detail for detail in exc_info.value.details)


def test_manifest_adds_paths_to_image_slides_only():
    outline = parse_outline(outline_json(image_count=2, title_slides=1), topic="Moon Cheese")

    manifest = outline.to_manifest({1: "images/image_1.png", 2: "images/image_2.jpg"})

    assert manifest["topic"] == "Moon Cheese"
    assert manifest["slides"][0] == {
        "title": {"content": "Welcome 0"},
        "presenter": {"name": "Dr. Banana", "title": "Chief Chimp Officer"},
    }
    assert manifest["slides"][2] == {"image": {"description": "picture 2", "path": "images/image_2.jpg"}}
    assert isinstance(outline.closing_slide, ImageSlide)
