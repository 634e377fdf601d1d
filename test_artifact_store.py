"""
Tests for persisting generations and rebuilding the catalog from disk.
"""

import json
from datetime import datetime, timezone

import pytest
from PIL import Image

from conftest import FIXED_NOW, make_image_bytes, outline_json
from improv_deck.core.artifact_store import (
    ArtifactStore,
    image_extension,
    kebab_case,
    parse_generation_date,
)
from improv_deck.core.exceptions import PersistenceError
from improv_deck.core.models import GeneratedImage, Generation
from improv_deck.core.outline_parser import parse_outline


def make_generation(topic="Space Lettuce", image_count=2, title_slides=1, skip=()):
    outline = parse_outline(outline_json(image_count, title_slides), topic=topic)
    images = {
        index: GeneratedImage(slide_index=index, data=make_image_bytes(), mime_type="image/png")
        for index, _ in outline.image_slides()
        if index not in skip
    }
    return Generation(topic=topic, outline=outline, images=images)


def write_generation_dir(root, name, topic, image_paths=(), manifest=True):
    directory = root / name
    directory.mkdir(parents=True)
    (directory / "topic.txt").write_text(topic, encoding="utf-8")
    if manifest:
        slides = [{"image": {"description": "x", "path": path}} for path in image_paths]
        (directory / "slides.json").write_text(json.dumps({"topic": topic, "slides": slides}), encoding="utf-8")
    return directory


def test_persist_writes_topic_images_and_manifest(generations_dir):
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)
    generation = make_generation()

    stored = store.persist(generation)

    assert stored.generation_id == "2024-01-02T10-20-30.123Z-space-lettuce"
    directory = generations_dir / stored.generation_id
    assert (directory / "topic.txt").read_text(encoding="utf-8") == "Space Lettuce"
    assert stored.image_paths == {1: "images/image_1.png", 2: "images/image_2.png"}
    assert (directory / "images" / "image_1.png").read_bytes() == generation.images[1].data

    manifest = json.loads((directory / "slides.json").read_text(encoding="utf-8"))
    assert manifest["topic"] == "Space Lettuce"
    assert manifest["slides"][0]["presenter"]["name"] == "Dr. Banana"
    assert manifest["slides"][1] == {"image": {"description": "picture 1", "path": "images/image_1.png"}}
    assert manifest["slides"][2]["image"]["path"] == "images/image_2.png"


def test_round_trip_through_catalog(generations_dir):
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)
    stored = store.persist(make_generation())

    entries = store.list_all()

    assert len(entries) == 1
    entry = entries[0]
    assert entry.generation_id == stored.generation_id
    assert entry.topic == "Space Lettuce"
    assert entry.date == FIXED_NOW
    assert entry.image_paths == [
        f"/logs/{stored.generation_id}/images/image_1.png",
        f"/logs/{stored.generation_id}/images/image_2.png",
    ]


def test_listing_is_idempotent(generations_dir):
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)
    store.persist(make_generation())

    first = [entry.to_dict() for entry in store.list_all()]
    second = [entry.to_dict() for entry in store.list_all()]

    assert first == second


def test_newest_first_then_topic_ascending(generations_dir):
    write_generation_dir(generations_dir, "2024-01-01T09-00-00.000Z-old", "Old")
    write_generation_dir(generations_dir, "2024-01-02T09-00-00.000Z-zebra", "Zebra")
    write_generation_dir(generations_dir, "2024-01-02T09-00-00.000Z-aardvark", "Aardvark")
    write_generation_dir(generations_dir, "2024-01-03Z-date-only", "Date Only")

    topics = [entry.topic for entry in ArtifactStore(root_dir=str(generations_dir)).list_all()]

    assert topics == ["Date Only", "Aardvark", "Zebra", "Old"]


def test_topic_tie_break_ignores_case(generations_dir):
    write_generation_dir(generations_dir, "2024-01-02T09-00-00.000Z-zebra", "Zebra")
    write_generation_dir(generations_dir, "2024-01-02T09-00-00.000Z-apple", "apple")
    write_generation_dir(generations_dir, "2024-01-02T09-00-00.000Z-mango", "Mango")

    topics = [entry.topic for entry in ArtifactStore(root_dir=str(generations_dir)).list_all()]

    assert topics == ["apple", "Mango", "Zebra"]


def test_incomplete_and_foreign_directories_are_skipped(generations_dir):
    write_generation_dir(generations_dir, "2024-01-01T09-00-00.000Z-done", "Done", ["images/image_0.png"])
    write_generation_dir(generations_dir, "2024-01-02T09-00-00.000Z-interrupted", "Interrupted", manifest=False)
    corrupt = write_generation_dir(generations_dir, "2024-01-03T09-00-00.000Z-corrupt", "Corrupt")
    (corrupt / "slides.json").write_text("{not json", encoding="utf-8")
    write_generation_dir(generations_dir, "scratch", "No Timestamp")
    (generations_dir / "README.txt").write_text("not a generation", encoding="utf-8")

    entries = ArtifactStore(root_dir=str(generations_dir)).list_all()

    assert [entry.topic for entry in entries] == ["Done"]


def test_topic_falls_back_to_manifest(generations_dir):
    directory = write_generation_dir(generations_dir, "2024-01-01T09-00-00.000Z-x", "From Topic File")
    (directory / "topic.txt").unlink()

    entries = ArtifactStore(root_dir=str(generations_dir)).list_all()

    assert entries[0].topic == "From Topic File"


def test_missing_root_lists_nothing(tmp_path):
    assert ArtifactStore(root_dir=str(tmp_path / "absent")).list_all() == []


def test_incomplete_generation_is_refused(generations_dir):
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)

    with pytest.raises(PersistenceError):
        store.persist(make_generation(skip=(2,)))

    assert not generations_dir.exists() or not any(generations_dir.iterdir())


def test_unwritable_root_is_persistence_error(generations_dir):
    generations_dir.parent.mkdir(parents=True, exist_ok=True)
    generations_dir.write_text("a file where the directory should be", encoding="utf-8")
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)

    with pytest.raises(PersistenceError):
        store.persist(make_generation())


def test_failed_manifest_write_removes_partial_directory(generations_dir, monkeypatch):
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)

    def disk_full(data, path):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(store.serialization_service, "write_json_atomic", disk_full)

    with pytest.raises(PersistenceError):
        store.persist(make_generation())

    assert list(generations_dir.iterdir()) == []
    assert store.list_all() == []


def test_same_timestamp_and_topic_get_distinct_directories(generations_dir):
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)

    first = store.persist(make_generation())
    second = store.persist(make_generation())

    assert first.generation_id != second.generation_id
    assert second.generation_id.endswith("-2")
    assert len(store.list_all()) == 2


def test_get_by_id(generations_dir):
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)
    stored = store.persist(make_generation())

    assert store.get(stored.generation_id).topic == "Space Lettuce"
    assert store.get("2099-01-01T00-00-00.000Z-missing") is None
    assert store.get("../etc") is None
    assert store.get("..") is None


@pytest.mark.parametrize("topic, expected", [
    ("The Habits of  Wealthy Chimpanzees", "the-habits-of-wealthy-chimpanzees"),
    ("What/Why: A Study?", "whatwhy-a-study"),
    ("   ", "untitled"),
])
def test_kebab_case(topic, expected):
    assert kebab_case(topic) == expected


def test_generation_date_parsing():
    assert parse_generation_date("2024-01-02T10-20-30.123Z-space") == datetime(
        2024, 1, 2, 10, 20, 30, 123000, tzinfo=timezone.utc
    )
    assert parse_generation_date("2024-01-02Z-space") == datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert parse_generation_date("space-lettuce") is None
    assert parse_generation_date("yesterdayZ-space") is None


def test_image_extension_follows_content():
    jpeg = GeneratedImage(slide_index=0, data=make_image_bytes(fmt="JPEG"), mime_type="image/png")
    unknown = GeneratedImage(slide_index=0, data=b"not an image", mime_type="image/gif")
    bare = GeneratedImage(slide_index=0, data=b"not an image")

    assert image_extension(jpeg) == "jpg"
    assert image_extension(unknown) == "gif"
    assert image_extension(bare) == "png"


def test_oversized_image_falls_back_to_mime_type(generations_dir, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 4)
    store = ArtifactStore(root_dir=str(generations_dir), clock=lambda: FIXED_NOW)
    generation = make_generation()

    assert image_extension(generation.images[1]) == "png"
    stored = store.persist(generation)

    assert stored.image_paths == {1: "images/image_1.png", 2: "images/image_2.png"}
