"""
Data model for slide deck outlines, generated images and stored generations.

The outline schema is expressed with pydantic so the model's JSON can be
validated in one step; slides are a tagged union keyed on which variant field
("title" or "image") an entry carries.
"""

import base64
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TitleText(_StrictModel):
    content: str


class Presenter(_StrictModel):
    name: str
    title: str


class ImageSpec(_StrictModel):
    description: str
    # Relative path of the stored file; only present in persisted manifests
    path: Optional[str] = None


class TitleSlide(_StrictModel):
    title: TitleText
    presenter: Presenter


class ImageSlide(_StrictModel):
    image: ImageSpec


def _slide_kind(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        if "image" in value:
            return "image"
        if "title" in value or "presenter" in value:
            return "title"
        return None
    if isinstance(value, ImageSlide):
        return "image"
    if isinstance(value, TitleSlide):
        return "title"
    return None


Slide = Annotated[
    Union[
        Annotated[TitleSlide, Tag("title")],
        Annotated[ImageSlide, Tag("image")],
    ],
    Discriminator(_slide_kind),
]


class SlideDeckOutline(BaseModel):
    """Structured plan for a deck: topic, optional title/presenter and ordered slides."""

    topic: str = ""
    title: Optional[TitleText] = None
    presenter: Optional[Presenter] = None
    slides: List[Slide] = Field(min_length=1)

    def image_slides(self) -> List[Tuple[int, ImageSlide]]:
        """Image-bearing slides with their index in presentation order."""
        return [(index, slide) for index, slide in enumerate(self.slides) if isinstance(slide, ImageSlide)]

    def title_slide_count(self) -> int:
        return sum(1 for slide in self.slides if isinstance(slide, TitleSlide))

    @property
    def closing_slide(self) -> Slide:
        return self.slides[-1]

    def to_manifest(self, image_paths: Dict[int, str]) -> Dict[str, Any]:
        """
        Build the persisted manifest document.

        Args:
            image_paths: Stored file path (relative to the generation directory) per slide index

        Returns:
            JSON-ready dict with every ImageSlide's image augmented with its path
        """
        slides = []
        for index, slide in enumerate(self.slides):
            if isinstance(slide, ImageSlide):
                slides.append({
                    "image": {
                        "description": slide.image.description,
                        "path": image_paths[index],
                    }
                })
            elif isinstance(slide, TitleSlide):
                slides.append(slide.model_dump())
            else:
                raise TypeError(f"Unknown slide variant: {type(slide).__name__}")

        manifest: Dict[str, Any] = {"topic": self.topic}
        if self.title is not None:
            manifest["title"] = self.title.model_dump()
        if self.presenter is not None:
            manifest["presenter"] = self.presenter.model_dump()
        manifest["slides"] = slides
        return manifest


@dataclass
class ImageResult:
    """Raw provider output: inline bytes or a short-lived URL."""
    data: Optional[bytes] = None
    url: Optional[str] = None
    mime_type: Optional[str] = None

    def __post_init__(self):
        if self.data is None and not self.url:
            raise ValueError("ImageResult needs either data or url")


@dataclass
class GeneratedImage:
    """Image bytes keyed by the originating slide's index in the outline."""
    slide_index: int
    data: bytes
    mime_type: Optional[str] = None
    source_url: Optional[str] = None

    def to_data_url(self) -> str:
        mime_type = self.mime_type or "image/png"
        encoded = base64.b64encode(self.data).decode("utf-8")
        return f"data:{mime_type};base64,{encoded}"


@dataclass
class Generation:
    """Completed pipeline output handed to the artifact store."""
    topic: str
    outline: SlideDeckOutline
    images: Dict[int, GeneratedImage]

    def missing_images(self) -> List[int]:
        return [index for index, _ in self.outline.image_slides() if index not in self.images]


@dataclass
class StoredGeneration:
    """Where a generation landed on disk."""
    generation_id: str
    path: str
    manifest_path: str
    image_paths: Dict[int, str] = field(default_factory=dict)


@dataclass
class PresentationEntry:
    """Read projection over one stored generation, used for browsing."""
    generation_id: str
    date: datetime
    topic: str
    image_paths: List[str]
    title: Optional[str] = None
    presenter: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON responses."""
        return {
            "generation_id": self.generation_id,
            "date": self.date.isoformat(),
            "topic": self.topic,
            "title": self.title,
            "presenter": self.presenter,
            "slides": list(self.image_paths),
        }


class PipelineState(Enum):
    START = "start"
    TOPIC_ACQUIRED = "topic_acquired"
    OUTLINE_ACQUIRED = "outline_acquired"
    IMAGES_ACQUIRED = "images_acquired"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Structured outcome of one generate request."""
    state: PipelineState
    topic: Optional[str] = None
    outline: Optional[SlideDeckOutline] = None
    images: List[GeneratedImage] = field(default_factory=list)
    stored: Optional[StoredGeneration] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[str] = None
    metrics: Optional[Dict] = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.PERSISTED

    def to_dict(self, url_prefix: Optional[str] = None) -> Dict:
        """
        Convert to dictionary for JSON responses.

        Persisted runs reference stored files under url_prefix; anything else
        (including partial results of a failed run) embeds data URLs.
        """
        if self.stored is not None and url_prefix is not None:
            image_urls = [
                f"{url_prefix}/{self.stored.generation_id}/{self.stored.image_paths[image.slide_index]}"
                for image in self.images
            ]
        else:
            image_urls = [image.to_data_url() for image in self.images]

        result = {
            "status": "success" if self.succeeded else "failed",
            "state": self.state.value,
            "topic": self.topic,
            "images": image_urls,
        }
        if self.stored is not None:
            result["generation_id"] = self.stored.generation_id
        if not self.succeeded:
            result["reason"] = self.reason
            result["error"] = self.error
            result["failed_stage"] = self.failed_stage
        if self.metrics is not None:
            result["metrics"] = self.metrics
        return result
