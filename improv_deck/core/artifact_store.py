"""
Artifact store: writes each generation to its own directory and rebuilds
the catalog of past generations from disk.

Layout of one generation:

    <root>/<timestamp>-<kebab-topic>/
        topic.txt
        images/image_<slide index>.<ext>
        slides.json        (written last; its presence marks completion)
"""

import io
import logging
import mimetypes
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from PIL import Image, UnidentifiedImageError

from config import (
    GENERATIONS_DIR,
    GENERATIONS_URL_PREFIX,
    TOPIC_FILE,
    MANIFEST_FILE,
    IMAGES_SUBDIR,
)
from improv_deck.core.exceptions import PersistenceError
from improv_deck.core.logging_utils import log_component_error
from improv_deck.core.models import Generation, GeneratedImage, PresentationEntry, StoredGeneration
from improv_deck.core.serialization_service import SerializationService

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMATS = ("%Y-%m-%dT%H-%M-%S.%f", "%Y-%m-%dT%H-%M-%S", "%Y-%m-%d")
_UNSAFE_NAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')
_MAX_SLUG_LENGTH = 80


def kebab_case(topic: str) -> str:
    """Lowercase, whitespace to dashes, filesystem-unsafe characters dropped."""
    slug = re.sub(r"\s+", "-", topic.strip().lower())
    slug = _UNSAFE_NAME_CHARS.sub("", slug)
    slug = slug[:_MAX_SLUG_LENGTH].strip("-.")
    return slug or "untitled"


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with colons replaced, e.g. 2024-01-02T10-20-30.123Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_generation_date(generation_id: str) -> Optional[datetime]:
    """Recover the creation time from a generation directory name."""
    prefix, separator, _ = generation_id.partition("Z-")
    if not separator:
        return None
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(prefix, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def image_extension(image: GeneratedImage) -> str:
    """Pick a file extension from the image bytes, falling back to the MIME type."""
    try:
        with Image.open(io.BytesIO(image.data)) as img:
            detected = img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        detected = None

    if detected:
        detected = detected.lower()
        return "jpg" if detected == "jpeg" else detected

    if image.mime_type:
        guessed = mimetypes.guess_extension(image.mime_type)
        if guessed:
            return "jpg" if guessed in (".jpe", ".jpeg") else guessed.lstrip(".")
    return "png"


class ArtifactStore:
    """
    Persists generations and lists them back.

    Args:
        root_dir: Directory holding one subdirectory per generation
        url_prefix: Prefix used when exposing stored images as URL paths
        clock: Returns the current time (replaced in tests)
    """

    def __init__(
        self,
        root_dir: str = GENERATIONS_DIR,
        url_prefix: str = GENERATIONS_URL_PREFIX,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.root_dir = Path(root_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.clock = clock
        self.serialization_service = SerializationService()

    def _reserve_directory(self, topic: str) -> Path:
        self.root_dir.mkdir(parents=True, exist_ok=True)
        base_name = f"{format_timestamp(self.clock())}-{kebab_case(topic)}"
        candidate = self.root_dir / base_name
        suffix = 2
        while True:
            try:
                candidate.mkdir()
                return candidate
            except FileExistsError:
                candidate = self.root_dir / f"{base_name}-{suffix}"
                suffix += 1

    def persist(self, generation: Generation) -> StoredGeneration:
        """
        Write a generation to disk. The manifest is always the last file written.

        Args:
            generation: Topic, validated outline and one image per image slide

        Returns:
            StoredGeneration describing the written directory

        Raises:
            PersistenceError: If the generation is incomplete or any write fails
        """
        missing = generation.missing_images()
        if missing:
            raise PersistenceError(f"Generation is missing images for slides {missing}")

        generation_dir = None
        try:
            generation_dir = self._reserve_directory(generation.topic)
            (generation_dir / TOPIC_FILE).write_text(generation.topic, encoding="utf-8")

            images_dir = generation_dir / IMAGES_SUBDIR
            images_dir.mkdir()
            image_paths: Dict[int, str] = {}
            for index, image in sorted(generation.images.items()):
                filename = f"image_{index}.{image_extension(image)}"
                (images_dir / filename).write_bytes(image.data)
                image_paths[index] = f"{IMAGES_SUBDIR}/{filename}"

            outline = generation.outline.model_copy(update={"topic": generation.topic})
            manifest_path = self.serialization_service.write_json_atomic(
                outline.to_manifest(image_paths),
                generation_dir / MANIFEST_FILE,
            )
        except OSError as e:
            log_component_error(
                logger, "Failed to persist generation", "ArtifactStore", error=e,
                context={"directory": generation_dir},
            )
            if generation_dir is not None:
                shutil.rmtree(generation_dir, ignore_errors=True)
            raise PersistenceError(
                f"Failed to write generation: {e}",
                path=str(generation_dir) if generation_dir else None,
            ) from e

        logger.info(f"Stored generation {generation_dir.name} with {len(image_paths)} images")
        return StoredGeneration(
            generation_id=generation_dir.name,
            path=str(generation_dir),
            manifest_path=str(manifest_path),
            image_paths=image_paths,
        )

    def _load_entry(self, generation_dir: Path) -> Optional[PresentationEntry]:
        manifest_path = generation_dir / MANIFEST_FILE
        if not manifest_path.is_file():
            logger.debug(f"Skipping {generation_dir.name}: no manifest (incomplete generation)")
            return None

        date = parse_generation_date(generation_dir.name)
        if date is None:
            logger.warning(f"Skipping {generation_dir.name}: directory name has no timestamp")
            return None

        try:
            manifest = self.serialization_service.read_json(manifest_path)
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping {generation_dir.name}: unreadable manifest ({e})")
            return None
        if not isinstance(manifest, dict):
            logger.warning(f"Skipping {generation_dir.name}: manifest is not an object")
            return None

        topic_path = generation_dir / TOPIC_FILE
        if topic_path.is_file():
            topic = topic_path.read_text(encoding="utf-8").strip()
        else:
            topic = str(manifest.get("topic", "")).strip()

        image_paths = []
        for slide in manifest.get("slides") or []:
            image = slide.get("image") if isinstance(slide, dict) else None
            if isinstance(image, dict) and image.get("path"):
                image_paths.append(f"{self.url_prefix}/{generation_dir.name}/{image['path']}")

        title = manifest.get("title")
        presenter = manifest.get("presenter")
        return PresentationEntry(
            generation_id=generation_dir.name,
            date=date,
            topic=topic,
            image_paths=image_paths,
            title=title.get("content") if isinstance(title, dict) else None,
            presenter=presenter if isinstance(presenter, dict) else None,
        )

    def list_all(self) -> List[PresentationEntry]:
        """
        Catalog of completed generations, newest first, ties broken by topic.

        Directories without a manifest (interrupted runs) are skipped.
        """
        if not self.root_dir.is_dir():
            return []

        entries = []
        for generation_dir in self.root_dir.iterdir():
            if not generation_dir.is_dir():
                continue
            entry = self._load_entry(generation_dir)
            if entry is not None:
                entries.append(entry)

        entries.sort(key=lambda entry: entry.topic.casefold())
        entries.sort(key=lambda entry: entry.date, reverse=True)
        return entries

    def get(self, generation_id: str) -> Optional[PresentationEntry]:
        """Look up one completed generation by its directory name."""
        if not generation_id or generation_id in (".", "..") or "/" in generation_id or "\\" in generation_id:
            return None
        generation_dir = self.root_dir / generation_id
        if not generation_dir.is_dir():
            return None
        return self._load_entry(generation_dir)
