import os
import sys
import json
from pathlib import Path

# Add python directory to path to import sourceverify
sys.path.append(os.path.join(os.path.dirname(__file__), '../python'))

from sourceverify import SignalPipeline


def main():
    print("--- Analyzing image (Python) ---")

    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} IMAGE")
        sys.exit(1)

    image_path = Path(sys.argv[1])
    if not image_path.exists():
        print(f"Image not found: {image_path}")
        sys.exit(1)

    with open(image_path, "rb") as f:
        image_buffer = f.read()

    print(f"Analyzing image: {image_path.name}")
    print(f"Image size: {len(image_buffer)} bytes")

    pipeline = SignalPipeline(max_workers=os.cpu_count() or 1)
    result = pipeline.analyze_image_bytes(image_buffer, file_name=image_path.name)

    print("\n[Aggregate]")
    print(f"Verdict: {result.verdict.value}")
    print(f"AI score: {result.ai_score:.1f}")
    print(f"Confidence: {result.confidence}")

    by_category = {}
    for signal in result.signals:
        by_category.setdefault(signal.category.value, []).append(signal.score)
    print("\n[Mean score per category]")
    print(json.dumps({k: round(sum(v) / len(v), 1) for k, v in by_category.items()}, indent=2))

if __name__ == "__main__":
    main()
