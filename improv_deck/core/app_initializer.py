"""
Application initialization utilities: logging, environment, credentials.
"""

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from config import (
    OUTPUT_DIR,
    IMAGE_PROVIDER,
    LOGGER_LOG_FILE,
    OBSERVABILITY_LOG_FILE,
)
from improv_deck.core.provider_registry import PROVIDER_API_KEYS
from improv_deck.utils.observability import configure_observability_logging


class AppInitializer:
    """
    Handles application initialization: logging, environment setup, API key validation.
    """

    def __init__(self, output_dir: str = OUTPUT_DIR, image_provider: str = IMAGE_PROVIDER):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.image_provider = image_provider

    def setup_logging(self) -> None:
        """Configure the root logger and the observability logger."""
        logging.basicConfig(
            filename=str(self.output_dir / LOGGER_LOG_FILE),
            level=logging.DEBUG,
            format="%(asctime)s %(filename)s:%(lineno)s %(levelname)s:%(message)s",
        )
        # SDK transport chatter drowns the pipeline lines at DEBUG
        for noisy in ("httpx", "httpcore", "urllib3", "google_genai"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        configure_observability_logging(log_file=str(self.output_dir / OBSERVABILITY_LOG_FILE))
        print("✅ Logging configured")

    def load_environment(self) -> None:
        """Load environment variables from a .env file if one exists."""
        load_dotenv()

    def required_api_keys(self) -> List[str]:
        """Environment variables needed by the text provider and the selected image provider."""
        names = [PROVIDER_API_KEYS["gemini"]]
        image_key = PROVIDER_API_KEYS.get(self.image_provider)
        if image_key and image_key not in names:
            names.append(image_key)
        return names

    def validate_api_keys(self) -> bool:
        """
        Validate that every required API key is set.

        Returns:
            True if all keys are set, False otherwise
        """
        missing = [name for name in self.required_api_keys() if not os.getenv(name)]
        if missing:
            for name in missing:
                print(f"\n❌ {name} environment variable not set")
            print("\nTo set the API key, use one of these methods:")
            print(f"1. Environment variable: export {missing[0]}='your-key-here'")
            print(f"2. .env file: Create a .env file with: {missing[0]}=your-key-here")
            return False
        return True

    def initialize(self) -> bool:
        """
        Perform all initialization steps.

        Returns:
            True if initialization successful, False otherwise
        """
        self.setup_logging()
        self.load_environment()
        return self.validate_api_keys()
