"""Audio capture utilities."""

from __future__ import annotations

import logging
import queue
import wave
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Callable

import numpy as np

logger = logging.getLogger("minuteframe")


@dataclass
class RecordingResult:
    audio_path: Optional[str]
    duration_seconds: int
    blocks: int = 0


def list_input_devices(loopback: bool = False) -> List[Dict[str, Any]]:
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise RuntimeError("sounddevice is required for device detection.") from exc

    devices = sd.query_devices()
    if loopback:
        return [d for d in devices if d.get("max_output_channels", 0) > 0]
    return [d for d in devices if d.get("max_input_channels", 0) > 0]


def select_preferred_device(
    candidates: List[Dict[str, Any]],
    prefer_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not candidates:
        raise RuntimeError("No input devices found.")
    if prefer_name:
        preferred = [
            d for d in candidates if prefer_name.lower() in d.get("name", "").lower()
        ]
        if preferred:
            return preferred[0]
        logger.warning("No device matching %r, falling back to default selection.", prefer_name)

    # 16 kHz capable devices avoid resampling in the host API
    native = [d for d in candidates if d.get("default_samplerate") == 16000]
    if native:
        return native[0]
    return candidates[0]


def find_input_device(prefer_name: Optional[str] = None, loopback: bool = False) -> dict:
    candidates = list_input_devices(loopback=loopback)
    return select_preferred_device(candidates, prefer_name=prefer_name)


def stream_audio_blocks(
    on_block: Callable[[np.ndarray], None],
    sample_rate_hz: int = 16000,
    block_size: int = 512,
    device_name: Optional[str] = None,
    stop_event=None,
    duration_seconds: Optional[float] = None,
    output_path: Optional[str] = None,
    loopback: bool = False,
) -> RecordingResult:
    """Capture mono float32 blocks and hand each one to ``on_block``.

    Blocks are handed over from this thread, not the audio callback, so a slow
    consumer never stalls the host audio API. When ``output_path`` is given the
    raw capture is also written as 16-bit WAV.
    """
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise RuntimeError("sounddevice is required for recording.") from exc

    device = find_input_device(device_name, loopback=loopback)
    device_index = device.get("index")
    logger.info("Capturing from %s at %d Hz", device.get("name"), sample_rate_hz)

    pending: "queue.Queue[np.ndarray]" = queue.Queue()

    def _callback(indata, _frames, _time, status):
        if status:
            logger.warning("Capture status: %s", status)
        pending.put(indata[:, 0].copy())

    extra_settings = None
    if loopback and hasattr(sd, "WasapiSettings"):
        try:
            extra_settings = sd.WasapiSettings(loopback=True)
        except TypeError:
            extra_settings = None

    target_frames = int(duration_seconds * sample_rate_hz) if duration_seconds else None
    frames_read = 0
    blocks = 0
    handle = None
    if output_path:
        handle = wave.open(output_path, "wb")
        handle.setnchannels(1)
        handle.setsampwidth(2)
        handle.setframerate(sample_rate_hz)

    try:
        with sd.InputStream(
            samplerate=sample_rate_hz,
            channels=1,
            dtype="float32",
            blocksize=block_size,
            device=device_index,
            callback=_callback,
            extra_settings=extra_settings,
        ):
            while True:
                if stop_event is not None and stop_event.is_set():
                    break
                if target_frames and frames_read >= target_frames:
                    break
                try:
                    block = pending.get(timeout=0.1)
                except queue.Empty:
                    continue
                if handle is not None:
                    pcm = (np.clip(block, -1.0, 1.0) * 32767.0).astype(np.int16)
                    handle.writeframes(pcm.tobytes())
                on_block(block)
                frames_read += block.shape[0]
                blocks += 1
    except KeyboardInterrupt:
        pass
    finally:
        if handle is not None:
            handle.close()

    duration = int(frames_read / sample_rate_hz)
    return RecordingResult(audio_path=output_path, duration_seconds=duration, blocks=blocks)
