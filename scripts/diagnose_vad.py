import argparse
import os
import sys
import threading
import time

import numpy as np

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from minuteframe.audio_utils import rms
from minuteframe.config import VadConfig
from minuteframe.events import SpeechEnd, SpeechStart
from minuteframe.recorder import stream_audio_blocks
from minuteframe.vad import VoiceActivitySegmenter


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Print live RMS levels and segmenter events to tune the threshold."
    )
    parser.add_argument("--device", help="Device name substring.")
    parser.add_argument("--seconds", type=float, default=15.0, help="Test duration.")
    parser.add_argument("--threshold", type=float, default=0.01, help="RMS threshold.")
    parser.add_argument("--block", type=int, default=512, help="Block size in samples.")
    args = parser.parse_args()

    segmenter = VoiceActivitySegmenter(VadConfig(energy_threshold=args.threshold))
    levels = {"rms": [], "peak": 0.0}
    lock = threading.Lock()

    def _on_block(block: np.ndarray) -> None:
        with lock:
            levels["rms"].append(rms(block))
            levels["peak"] = max(levels["peak"], float(np.max(np.abs(block))))
        for event in segmenter.process(block):
            if isinstance(event, SpeechStart):
                print(f"  >> speech start at {event.timestamp:.2f}s")
            elif isinstance(event, SpeechEnd):
                print(
                    f"  << speech end: {event.duration:.2f}s "
                    f"from {event.start_time:.2f}s"
                )

    stop_event = threading.Event()

    def _report() -> None:
        while not stop_event.wait(0.5):
            with lock:
                values = levels["rms"]
                levels["rms"] = []
                peak = levels["peak"]
                levels["peak"] = 0.0
            if values:
                mean = sum(values) / len(values)
                marker = "speech" if mean > args.threshold else "silence"
                print(f"RMS {mean:.4f} | Peak {peak:.3f} | {marker}")
            else:
                print("No samples yet...")

    reporter = threading.Thread(target=_report, daemon=True)
    reporter.start()
    print("Streaming... press Ctrl+C to stop early.")
    started = time.time()
    try:
        stream_audio_blocks(
            _on_block,
            block_size=args.block,
            device_name=args.device,
            duration_seconds=args.seconds,
        )
    finally:
        stop_event.set()
        reporter.join()
    pending = segmenter.flush()
    if pending is not None:
        print(f"  << open utterance flushed: {pending.duration:.2f}s")
    print(f"Elapsed: {time.time() - started:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
