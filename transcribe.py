#!/usr/bin/env python3
"""
Voice Task CLI
Records from the microphone (or reads an audio file), transcribes it, and
extracts task fields. Optionally saves the task to the board database.
"""

import sys
import json
import time
import argparse
import logging
from pathlib import Path

from engine import (
    VoiceTaskError,
    build_pipeline,
    load_config,
)


# ============================================================================
# INPUT
# ============================================================================

def record_audio(seconds: float) -> tuple[bytes, str]:
    """Record from the default input device for a fixed duration."""
    from engine.audio import AudioCapture

    def show_level(level: float):
        bar = "█" * int(level * 30)
        print(f"\r   🎙️  {bar:<30}", end="", flush=True)

    print(f"🔴 Recording for {seconds:g}s... speak now")
    capture = AudioCapture(on_level=show_level)
    capture.start()
    try:
        time.sleep(seconds)
    finally:
        blob = capture.stop()
    print()
    print(f"   ✅ Captured {blob.duration_seconds:.1f}s ({len(blob.data) / 1024:.1f} KB)")
    return blob.data, blob.filename


def read_audio(path: Path) -> tuple[bytes, str]:
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    print(f"📂 Reading {path.name} ({path.stat().st_size / 1024:.1f} KB)")
    return path.read_bytes(), path.name


def save_task(result) -> str:
    """Persist the extracted fields as a board task. Returns the task id."""
    from app.database import SessionLocal, init_db
    from app.task_store import TaskStore

    init_db()
    db = SessionLocal()
    try:
        task = TaskStore(db).create_from_fields(result.parsed, result.transcript)
        return task.id
    finally:
        db.close()


# ============================================================================
# OUTPUT
# ============================================================================

def print_result(result):
    fields = result.parsed
    print(f"\n{'='*60}")
    print(f"📝 Transcript: {result.transcript}")
    print(f"{'='*60}")
    print(f"   Title:       {fields.title or '-'}")
    print(f"   Description: {fields.description or '-'}")
    print(f"   Priority:    {fields.priority.value if fields.priority else '-'}")
    print(f"   Status:      {fields.status.value}")
    print(f"   Due:         {fields.due_date.isoformat() if fields.due_date else '-'}")
    if not result.model_derived:
        print("   ⚠️  Fields came from the rule-based fallback")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Turn a spoken task description into task fields",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --record 8
  %(prog)s note.webm --timezone America/New_York
  %(prog)s note.wav --save --json

Environment:
  Set OPENAI_API_KEY (and GEMINI_API_KEYS for TRANSCRIPTION_ENGINE=gemini)
        """
    )

    parser.add_argument(
        "input",
        type=Path,
        nargs="?",
        default=None,
        help="Input audio file (.webm, .wav, .mp3, .m4a, ...)"
    )

    parser.add_argument(
        "--record",
        type=float,
        metavar="SECONDS",
        default=None,
        help="Record from the microphone instead of reading a file"
    )

    parser.add_argument(
        "--timezone",
        type=str,
        default=None,
        help="IANA timezone for resolving spoken dates (default: UTC)"
    )

    parser.add_argument(
        "--save",
        action="store_true",
        help="Save the task to the board database"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON"
    )

    args = parser.parse_args(argv)

    if (args.input is None) == (args.record is None):
        parser.error("give exactly one of an input file or --record SECONDS")
    if args.record is not None and args.record <= 0:
        parser.error("--record must be a positive number of seconds")

    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        config = load_config()
    except ValueError as e:
        print(f"❌ Error: {e}")
        return 1

    pipeline = build_pipeline(config)

    try:
        if args.record is not None:
            audio_bytes, filename = record_audio(args.record)
        else:
            audio_bytes, filename = read_audio(args.input)
        result = pipeline.process(audio_bytes, filename, args.timezone)
    except (VoiceTaskError, FileNotFoundError) as e:
        print(f"❌ {e}")
        return 1

    output = result.to_dict()
    if args.save:
        output["task_id"] = save_task(result)

    if args.json:
        print(json.dumps(output, indent=2))
    else:
        print_result(result)
        if args.save:
            print(f"\n✅ Saved task {output['task_id']}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
