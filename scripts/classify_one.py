from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from PIL import Image

from focuscoach.config import LocalLLMSettings, get_settings
from focuscoach.gemini_client import GeminiClassifier
from focuscoach.local_llm_client import LocalLLMClassifier
from focuscoach.logging_utils import init_logger
from focuscoach.utils import image_to_data_url


def main() -> None:
    parser = argparse.ArgumentParser(description="Classify a single desk photo and print the attentiveness state")
    parser.add_argument("--image", required=True)
    parser.add_argument("--backend", choices=["gemini", "local"], default="gemini")
    parser.add_argument("--base-url", default="http://localhost:1234/v1", help="Local backend only")
    parser.add_argument("--model", default="auto", help="Local backend only")
    args = parser.parse_args()

    logger = init_logger("classify_one", Path("logs").resolve(), "INFO")

    if args.backend == "local":
        settings = LocalLLMSettings(
            base_url=args.base_url.rstrip("/"),
            model=args.model,
            api_key=None,
            temperature=0.0,
            max_tokens=16,
            timeout_seconds=60.0,
        )
        classifier = LocalLLMClassifier(settings, logger)
    else:
        classifier = GeminiClassifier(get_settings().gemini, logger)

    with Image.open(args.image) as image:
        frame = image_to_data_url(image)

    state = asyncio.run(classifier.classify(frame))
    print("state:", state.value)


if __name__ == "__main__":
    main()
