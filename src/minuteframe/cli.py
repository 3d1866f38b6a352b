"""CLI entry point."""

from __future__ import annotations

import argparse
from dataclasses import asdict
from datetime import datetime
import json
import os
import queue
import threading

from .config import Config, load_config
from .events import SnapshotReady, UtteranceAdded
from .intelligence import IntelligenceExtractor
from .logging_utils import setup_logging
from .recorder import list_input_devices, stream_audio_blocks
from .renderer import render_note, render_transcript
from .session import MeetingSession
from .session_io import load_meeting, save_meeting, save_report
from .storage import build_session_basename, ensure_structure, session_paths
from .transcriber import WhisperTranscriber, transcribe_file


def _load(args) -> Config:
    if args.config and os.path.exists(args.config):
        cfg = load_config(args.config)
    else:
        cfg = Config(base_dir="")
    if getattr(args, "base_dir", None):
        cfg.base_dir = args.base_dir
    if getattr(args, "model", None):
        cfg.whisper_model = args.model
    if getattr(args, "language", None):
        cfg.language = args.language
    if getattr(args, "device", None):
        cfg.device_name = args.device
    return cfg


def _print_display(session: MeetingSession, stop_event: threading.Event) -> None:
    while not stop_event.is_set() or not session.display.empty():
        try:
            event = session.display.get(timeout=0.2)
        except queue.Empty:
            continue
        if isinstance(event, UtteranceAdded):
            print(f"\n[{event.speaker_name}] {event.utterance.text}", flush=True)
        elif isinstance(event, SnapshotReady):
            if event.warning:
                print(f"\n(live) warning: {event.warning}", flush=True)
            elif event.appended_text:
                print(f"(live) ... {event.appended_text}", flush=True)


def main() -> int:
    parser = argparse.ArgumentParser(prog="minuteframe")
    parser.add_argument("--verbose", action="store_true", help="Log to stderr too.")
    sub = parser.add_subparsers(dest="command")

    devices_cmd = sub.add_parser("devices")
    devices_cmd.add_argument("--match", help="Filter device names by substring.")
    devices_cmd.add_argument(
        "--loopback",
        action="store_true",
        help="List output devices for system audio capture (WASAPI).",
    )

    live_cmd = sub.add_parser("live")
    live_cmd.add_argument("--title", default="Meeting", help="Meeting title.")
    live_cmd.add_argument("--config", default="minuteframe_config.yml", help="Config.")
    live_cmd.add_argument("--base-dir", help="Base output directory.")
    live_cmd.add_argument(
        "--duration", type=float, help="Seconds. Omit for manual stop (Ctrl+C)."
    )
    live_cmd.add_argument("--device", help="Preferred device name substring.")
    live_cmd.add_argument("--model", help="Whisper model.")
    live_cmd.add_argument("--language", help="Language code.")
    live_cmd.add_argument(
        "--no-live", action="store_true", help="Disable the live snapshot display."
    )
    live_cmd.add_argument(
        "--discard-open",
        action="store_true",
        help="Discard the unfinished utterance on stop instead of transcribing it.",
    )

    transcribe_cmd = sub.add_parser("transcribe")
    transcribe_cmd.add_argument("audio_path", help="Path to audio file.")
    transcribe_cmd.add_argument("--config", default="minuteframe_config.yml", help="Config.")
    transcribe_cmd.add_argument("--model", help="Whisper model.")
    transcribe_cmd.add_argument("--language", help="Language code.")
    transcribe_cmd.add_argument("--out", help="Write text and word spans to JSON.")

    report_cmd = sub.add_parser("report")
    report_cmd.add_argument("path", help="Path to .meeting.json")
    report_cmd.add_argument("--config", default="minuteframe_config.yml", help="Config.")
    report_cmd.add_argument("--out", help="Write the report JSON here.")
    report_cmd.add_argument("--note", help="Write a Markdown note here.")

    show_cmd = sub.add_parser("show")
    show_cmd.add_argument("path", help="Path to .meeting.json")

    args = parser.parse_args()
    if args.command == "devices":
        devices = list_input_devices(loopback=bool(args.loopback))
        if args.match:
            devices = [
                d for d in devices if args.match.lower() in d.get("name", "").lower()
            ]
        for device in devices:
            name = device.get("name", "Unknown")
            index = device.get("index", "?")
            key = "max_output_channels" if args.loopback else "max_input_channels"
            rate = device.get("default_samplerate")
            print(f"[{index}] {name} (channels: {device.get(key, 0)}, rate={rate})")
        return 0

    if args.command == "live":
        cfg = _load(args)
        paths = ensure_structure(cfg.base_dir or os.getcwd())
        setup_logging(paths["logs"], console=args.verbose)
        basename = build_session_basename(args.title, datetime.now())
        outputs = session_paths(paths["root"], basename)

        transcriber = WhisperTranscriber(
            cfg.whisper_model,
            language=cfg.language,
            device=cfg.device,
            compute_type=cfg.compute_type,
        )
        session = MeetingSession(cfg, transcriber, title=args.title)
        session.meeting.meeting_id = basename

        stop_event = threading.Event()
        dispatcher = threading.Thread(
            target=session.run, args=(stop_event,), name="dispatch", daemon=True
        )
        display_stop = threading.Event()
        display = threading.Thread(
            target=_print_display, args=(session, display_stop), name="display", daemon=True
        )
        dispatcher.start()
        display.start()
        if cfg.live.enabled and not args.no_live:
            session.start_live_display(transcriber.snapshot)

        print("Listening... press Ctrl+C to stop.")
        try:
            result = stream_audio_blocks(
                session.feed,
                sample_rate_hz=cfg.audio.sample_rate_hz,
                block_size=cfg.audio.block_size,
                device_name=cfg.device_name,
                duration_seconds=args.duration,
                output_path=outputs["audio"] if cfg.save_audio else None,
            )
        finally:
            stop_event.set()
            dispatcher.join()
            session.stop(flush=not args.discard_open)
            display_stop.set()
            display.join(timeout=2.0)

        report = session.generate_report()
        save_meeting(outputs["meeting"], session.meeting)
        if report is not None:
            save_report(outputs["report"], report)
        note_text = render_note(
            title=args.title,
            date=datetime.now().strftime("%Y-%m-%d"),
            meeting=session.meeting,
            report=report,
            audio_filename=os.path.basename(outputs["audio"]) if cfg.save_audio else None,
            duration_seconds=result.duration_seconds,
            started_at=session.meeting.started_at,
        )
        with open(outputs["note"], "w", encoding="utf-8") as handle:
            handle.write(note_text)
        with open(outputs["transcript"], "w", encoding="utf-8") as handle:
            handle.write(render_transcript(session.meeting))
        print(
            f"\nUtterances: {len(session.meeting.utterances)}, "
            f"speakers: {len(session.meeting.speakers)}"
        )
        print(f"Note saved: {outputs['note']}")
        return 0

    if args.command == "transcribe":
        cfg = _load(args)
        transcriber = WhisperTranscriber(
            cfg.whisper_model,
            language=cfg.language,
            device=cfg.device,
            compute_type=cfg.compute_type,
        )
        result = transcribe_file(args.audio_path, transcriber, language=cfg.language)
        if args.out:
            with open(args.out, "w", encoding="utf-8") as handle:
                json.dump(asdict(result), handle, indent=2, ensure_ascii=False)
        print(result.text or "[Empty transcript]")
        return 0

    if args.command == "report":
        cfg = _load(args)
        meeting = load_meeting(args.path)
        report = IntelligenceExtractor(cfg.intelligence).generate(meeting)
        if report is None:
            print("Transcript too short for a report.")
            return 1
        if args.out:
            save_report(args.out, report)
        if args.note:
            note_text = render_note(
                title=meeting.title,
                date=(meeting.started_at or "")[:10],
                meeting=meeting,
                report=report,
                started_at=meeting.started_at,
            )
            with open(args.note, "w", encoding="utf-8") as handle:
                handle.write(note_text)
        print(report.summary.standard)
        print(
            f"Action items: {len(report.action_items)}, decisions: {len(report.decisions)}, "
            f"questions: {len(report.questions)}"
        )
        return 0

    if args.command == "show":
        meeting = load_meeting(args.path)
        print(f"Meeting: {meeting.title}")
        print(f"Started: {meeting.started_at}")
        print(f"Speakers: {len(meeting.speakers)}")
        print("")
        print(render_transcript(meeting))
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
