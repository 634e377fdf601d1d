"""
Main script for local development: generate one improv deck or list the archive.
"""

import argparse
import asyncio

from config import OUTPUT_DIR, IMAGE_PROVIDER, INCLUDE_OPENING_SLIDE, TOPIC_STRATEGY, GenerationConfig
from improv_deck.core.app_initializer import AppInitializer
from improv_deck.core.artifact_store import ArtifactStore
from improv_deck.core.pipeline_orchestrator import create_pipeline_orchestrator


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate an improv slide deck.")
    parser.add_argument("--list", action="store_true", help="List stored generations and exit")
    parser.add_argument("--image-provider", default=IMAGE_PROVIDER, help="Registered image provider name")
    parser.add_argument("--topic-strategy", default=TOPIC_STRATEGY, choices=["llm", "pool"])
    parser.add_argument("--opening-slide", action="store_true", help="Ask for a title slide with a presenter")
    return parser.parse_args(argv)


def print_catalog(store: ArtifactStore) -> None:
    entries = store.list_all()
    if not entries:
        print("No stored generations.")
        return
    for entry in entries:
        print(f"{entry.date.isoformat()}  {entry.topic}  ({len(entry.image_paths)} images)")
        print(f"    {entry.generation_id}")


async def main(argv=None):
    """Main function for local development."""
    args = parse_args(argv)
    store = ArtifactStore()

    if args.list:
        print_catalog(store)
        return

    # Initialize application (logging, environment, API key validation)
    initializer = AppInitializer(output_dir=OUTPUT_DIR, image_provider=args.image_provider)
    if not initializer.initialize():
        return

    config = GenerationConfig(include_opening_slide=args.opening_slide or INCLUDE_OPENING_SLIDE)
    orchestrator = create_pipeline_orchestrator(
        config=config,
        artifact_store=store,
        image_provider=args.image_provider,
        topic_strategy=args.topic_strategy,
        output_dir=OUTPUT_DIR,
        print_summary=True,
    )
    result = await orchestrator.run()

    print("\n" + "=" * 60)
    if result.succeeded:
        print("🎉 Deck generated!")
        print("=" * 60)
        print(f"Topic: {result.topic}")
        print(f"Stored in: {result.stored.path}")
        print(f"Images: {len(result.images)}")
    else:
        print("❌ Generation failed")
        print("=" * 60)
        print(f"Reason: {result.reason} (stage: {result.failed_stage})")
        print(f"Error: {result.error}")
        if result.images:
            print(f"Partial images generated: {len(result.images)}")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n⚠️  Program interrupted by user")
        exit(0)
