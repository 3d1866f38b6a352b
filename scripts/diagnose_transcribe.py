import argparse
import os
import sys
import time

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from minuteframe.audio_utils import WORKING_SAMPLE_RATE, load_audio
from minuteframe.transcriber import TranscriptionOptions, WhisperTranscriber


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("audio_path", help="Path to audio file to transcribe.")
    parser.add_argument("--model", default="base", help="Whisper model name.")
    parser.add_argument("--language", help="Language code (e.g., en).")
    parser.add_argument("--device", help="Device preference (cpu/cuda).")
    parser.add_argument("--compute-type", help="Compute type (int8/float16).")
    parser.add_argument("--fast", action="store_true", help="Greedy snapshot settings.")
    args = parser.parse_args()

    progress_state = {"last": -1}

    def _progress_cb(ratio: float) -> None:
        percent = int(ratio * 100)
        if percent >= progress_state["last"] + 5:
            progress_state["last"] = percent
            print(f"Progress {percent}%")

    samples = load_audio(args.audio_path)
    transcriber = WhisperTranscriber(
        args.model,
        language=args.language,
        device=args.device,
        compute_type=args.compute_type,
    )
    options = TranscriptionOptions(
        language=args.language,
        word_timestamps=not args.fast,
        beam_size=1 if args.fast else 5,
    )
    started = time.time()
    result = transcriber(samples, options, progress_cb=_progress_cb)
    elapsed = time.time() - started
    audio_s = samples.size / WORKING_SAMPLE_RATE
    print(f"Words: {len(result.word_spans)}")
    print(f"Audio: {audio_s:.2f}s, elapsed: {elapsed:.2f}s (x{audio_s / max(elapsed, 1e-6):.1f})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
