"""Audio helpers."""

from __future__ import annotations

import threading

import numpy as np

WORKING_SAMPLE_RATE = 16000


def to_mono_float32(samples) -> np.ndarray:
    data = np.asarray(samples)
    if np.issubdtype(data.dtype, np.integer):
        data = data.astype(np.float32) / 32768.0
    else:
        data = data.astype(np.float32, copy=False)
    if data.ndim > 1:
        data = data.mean(axis=1) if data.shape[1] > 1 else data[:, 0]
    return data.astype(np.float32, copy=False)


def rms(samples: np.ndarray) -> float:
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    if source_rate == target_rate or samples.size == 0:
        return samples.astype(np.float32, copy=False)
    target_len = int(round(samples.size * target_rate / source_rate))
    source_t = np.arange(samples.size) / source_rate
    target_t = np.arange(target_len) / target_rate
    return np.interp(target_t, source_t, samples).astype(np.float32)


def load_audio(path: str, target_rate: int = WORKING_SAMPLE_RATE) -> np.ndarray:
    try:
        import soundfile as sf
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("soundfile is required to decode audio files.") from exc

    try:
        waveform, sample_rate = sf.read(path, dtype="float32", always_2d=True)
    except Exception as exc:
        raise RuntimeError(f"Failed to decode audio file {path}: {exc}") from exc
    return resample(to_mono_float32(waveform), int(sample_rate), target_rate)


class AudioRingBuffer:
    """Keeps the most recent ``max_seconds`` of mono audio for live snapshots."""

    def __init__(self, max_seconds: float, sample_rate: int = WORKING_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._capacity = max(1, int(max_seconds * sample_rate))
        self._data = np.zeros(self._capacity, dtype=np.float32)
        self._filled = 0
        self._write = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return self._filled

    def append(self, samples: np.ndarray) -> None:
        chunk = to_mono_float32(samples)
        if chunk.size >= self._capacity:
            chunk = chunk[-self._capacity:]
        with self._lock:
            end = self._write + chunk.size
            if end <= self._capacity:
                self._data[self._write:end] = chunk
            else:
                split = self._capacity - self._write
                self._data[self._write:] = chunk[:split]
                self._data[: chunk.size - split] = chunk[split:]
            self._write = end % self._capacity
            self._filled = min(self._capacity, self._filled + chunk.size)

    def latest(self, seconds: float) -> np.ndarray:
        with self._lock:
            count = min(self._filled, int(seconds * self.sample_rate))
            if count <= 0:
                return np.zeros(0, dtype=np.float32)
            start = (self._write - count) % self._capacity
            if start + count <= self._capacity:
                return self._data[start:start + count].copy()
            return np.concatenate(
                [self._data[start:], self._data[: count - (self._capacity - start)]]
            )

    def clear(self) -> None:
        with self._lock:
            self._filled = 0
            self._write = 0
