"""CLI interface: mix an episode, inspect overlap decisions, print envelopes."""

import argparse
import dataclasses
import json
import logging
import os
import shutil
import sys

from podcast_mixer.assembly import choose_strategy, concatenate_with_crossfade
from podcast_mixer.constants import OUTPUT_FILENAME, VERSION
from podcast_mixer.dialogue import prepare_segment
from podcast_mixer.envelope import (
    DEFAULT_INTRO_DIALOG,
    DEFAULT_INTRO_MUSIC,
    DEFAULT_OUTRO_DIALOG,
    DEFAULT_OUTRO_MUSIC,
    EnvelopePair,
    envelope_to_dict,
    legacy_intro_to_envelopes,
    legacy_outro_to_envelopes,
)
from podcast_mixer.errors import MixError
from podcast_mixer.exporter import export
from podcast_mixer.models import ScriptSegment
from podcast_mixer.overlap import classify_overlap
from podcast_mixer.parser import estimate_duration, parse_script_text, validate_emotion_tags
from podcast_mixer.settings import MixConfig, MixingSettings, load_settings

AUDIO_EXTENSIONS = (".mp3", ".wav")


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required but not found.", file=sys.stderr)
        print("Install with: apt install ffmpeg (or brew install ffmpeg)", file=sys.stderr)
        raise SystemExit(1)


def _fail(message: str):
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(1)


def _load_segments(script_path: str, segments_dir: str) -> list[ScriptSegment]:
    """Pair each script line with its audio file (sorted by filename)."""
    if not os.path.exists(script_path):
        _fail(f"File not found: {script_path}")
    if not os.path.isdir(segments_dir):
        _fail(f"Segments directory not found: {segments_dir}")

    with open(script_path, encoding="utf-8") as f:
        lines = parse_script_text(f.read())
    if not lines:
        _fail(f"Could not parse any HOST:/GUEST: lines from: {script_path}")

    for warning in validate_emotion_tags(lines):
        print(f"Warning: {warning}", file=sys.stderr)

    files = sorted(
        name for name in os.listdir(segments_dir)
        if name.lower().endswith(AUDIO_EXTENSIONS)
    )
    if len(files) != len(lines):
        _fail(f"Script has {len(lines)} lines but {segments_dir} holds {len(files)} audio files")

    segments = []
    for line, name in zip(lines, files):
        with open(os.path.join(segments_dir, name), "rb") as f:
            segments.append(ScriptSegment(
                buffer=f.read(),
                speaker=line.speaker,
                text=line.text,
                overlapping=line.overlapping,
            ))
    print(f"Loaded {len(segments)} segments (~{estimate_duration(lines):.0f}s of speech)")
    return segments


def _settings_from_args(args) -> MixingSettings:
    try:
        settings = load_settings(args.settings) if args.settings else MixingSettings()
    except (OSError, ValueError) as e:
        _fail(f"Could not load settings: {e}")

    overrides = {}
    if getattr(args, "intro", None) is not None:
        overrides["include_intro"] = args.intro
    if getattr(args, "outro", None) is not None:
        overrides["include_outro"] = args.outro
    return dataclasses.replace(settings, **overrides) if overrides else settings


def cmd_mix(args):
    _check_ffmpeg()
    settings = _settings_from_args(args)
    config = MixConfig()
    segments = _load_segments(args.script, args.segments_dir)
    requested = "streaming" if args.streaming else "auto"

    def progress(percent):
        print(f"  {percent}%")

    print("Mixing episode...")
    try:
        mp3 = concatenate_with_crossfade(
            segments, settings, config, progress=progress, strategy=requested,
        )
    except MixError as e:
        _fail(str(e))

    manifest = export(
        mp3,
        args.output,
        settings=settings.to_dict(),
        segment_count=len(segments),
        strategy=choose_strategy(len(segments), config, requested),
    )
    print(f"Manifest: {manifest}")
    print(f"Done: {args.output}")


def cmd_analyze(args):
    """Print the overlap decision for every adjacent pair of lines."""
    _check_ffmpeg()
    settings = _settings_from_args(args)
    config = MixConfig()
    segments = _load_segments(args.script, args.segments_dir)

    total_ms = 0.0
    prev = None
    try:
        for i, seg in enumerate(segments):
            curr = prepare_segment(i, seg, settings, config, trim=i < len(segments) - 1)
            if prev is not None:
                decision = classify_overlap(prev, curr, settings, config)
                total_ms += decision.overlap_ms
                mode = "additive" if decision.additive else "crossfade"
                print(
                    f"  {i:>3} {curr.speaker:<5} {decision.rule:<15} "
                    f"{decision.overlap_ms:>6.0f}ms {mode:<9} {curr.text[:50]}"
                )
            else:
                print(f"  {i:>3} {curr.speaker:<5} {'start':<15} {0:>6}ms {'':<9} {curr.text[:50]}")
            prev = curr
    except MixError as e:
        _fail(str(e))
    print(f"Total overlap: {total_ms / 1000:.2f}s")


def cmd_envelopes(args):
    """Print the intro/outro envelope pairs the settings resolve to."""
    if args.defaults:
        intro = EnvelopePair(DEFAULT_INTRO_MUSIC, DEFAULT_INTRO_DIALOG)
        outro = EnvelopePair(DEFAULT_OUTRO_MUSIC, DEFAULT_OUTRO_DIALOG)
    else:
        settings = _settings_from_args(args)
        intro = legacy_intro_to_envelopes(settings)
        if settings.intro_music_envelope is not None and settings.intro_dialog_envelope is not None:
            intro = EnvelopePair(settings.intro_music_envelope, settings.intro_dialog_envelope)
        outro = legacy_outro_to_envelopes(settings)
        if settings.outro_music_envelope is not None and settings.outro_dialog_envelope is not None:
            outro = EnvelopePair(settings.outro_music_envelope, settings.outro_dialog_envelope)

    data = {
        "intro": {"music": envelope_to_dict(intro.music), "dialog": envelope_to_dict(intro.dialog)},
        "outro": {"music": envelope_to_dict(outro.music), "dialog": envelope_to_dict(outro.dialog)},
    }
    print(json.dumps(data, indent=2))


def _add_settings_args(p, bookends: bool = True):
    p.add_argument("--settings", help="Mixing settings JSON file")
    if bookends:
        p.add_argument("--intro", dest="intro", action="store_true", default=None, help="Add intro music")
        p.add_argument("--no-intro", dest="intro", action="store_false", help="No intro music")
        p.add_argument("--outro", dest="outro", action="store_true", default=None, help="Add outro music")
        p.add_argument("--no-outro", dest="outro", action="store_false", help="No outro music")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="podcast-mixer",
        description="Podcast Mixer: stitch per-line speech clips into a finished episode",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log mixing decisions")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # mix
    mix_parser = subparsers.add_parser("mix", help="Mix segments into an MP3 episode")
    mix_parser.add_argument("script", help="Script text file (HOST:/GUEST: lines)")
    mix_parser.add_argument("segments_dir", help="Directory of per-line audio files")
    mix_parser.add_argument("-o", "--output", default=OUTPUT_FILENAME, help="Output MP3 path")
    mix_parser.add_argument("--streaming", action="store_true", help="Force the bounded-memory path")
    _add_settings_args(mix_parser)
    mix_parser.set_defaults(func=cmd_mix)

    # analyze
    analyze_parser = subparsers.add_parser("analyze", help="Show overlap decisions without mixing")
    analyze_parser.add_argument("script", help="Script text file")
    analyze_parser.add_argument("segments_dir", help="Directory of per-line audio files")
    _add_settings_args(analyze_parser, bookends=False)
    analyze_parser.set_defaults(func=cmd_analyze)

    # envelopes
    envelopes_parser = subparsers.add_parser("envelopes", help="Print resolved intro/outro envelopes")
    envelopes_parser.add_argument("--defaults", action="store_true", help="Print the built-in envelope presets")
    _add_settings_args(envelopes_parser, bookends=False)
    envelopes_parser.set_defaults(func=cmd_envelopes)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.func(args)
