"""Per-utterance acoustic feature vectors."""

from __future__ import annotations

import math
from dataclasses import asdict, fields
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np

from .audio_utils import WORKING_SAMPLE_RATE, to_mono_float32
from .models import FeatureVector

CLAMP_RANGES: Dict[str, Tuple[float, float]] = {
    "pitch": (80.0, 400.0),
    "formant": (0.0, 100.0),
    "energy": (0.0, 1.0),
    "low_band": (0.0, 1.0),
    "mid_band": (0.0, 1.0),
    "high_band": (0.0, 1.0),
    "pitch_variance": (0.0, 1000.0),
    "energy_variance": (0.0, 1.0),
    "duration": (0.0, math.inf),
}

# camelCase keys as produced by browser-side extractors
_ALIASES = {
    "lowBand": "low_band",
    "midBand": "mid_band",
    "highBand": "high_band",
    "pitchVariance": "pitch_variance",
    "energyVariance": "energy_variance",
}

LOW_BAND_HZ = 500.0
HIGH_BAND_HZ = 2000.0
MIN_PITCH_HZ = 50.0
MAX_PITCH_HZ = 500.0
FRAME_SECONDS = 0.032
VOICED_RMS = 0.01


def _coerce(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def normalize_features(raw: Union[FeatureVector, Mapping[str, Any], None]) -> FeatureVector:
    """Default missing fields to zero, then clamp every field to its range."""
    if raw is None:
        data: Dict[str, Any] = {}
    elif isinstance(raw, FeatureVector):
        data = asdict(raw)
    else:
        data = {_ALIASES.get(k, k): v for k, v in raw.items()}

    values = {}
    for f in fields(FeatureVector):
        low, high = CLAMP_RANGES[f.name]
        values[f.name] = min(max(_coerce(data.get(f.name)), low), high)
    return FeatureVector(**values)


def _frame_pitch(frame: np.ndarray, sample_rate: int) -> Optional[float]:
    centered = frame - frame.mean()
    corr = np.correlate(centered, centered, mode="full")[centered.size - 1:]
    min_lag = int(sample_rate / MAX_PITCH_HZ)
    max_lag = int(sample_rate / MIN_PITCH_HZ)
    if max_lag >= corr.size or corr[0] <= 0:
        return None
    window = corr[min_lag:max_lag]
    peak = int(np.argmax(window)) + min_lag
    # Weakly periodic frames are treated as unvoiced.
    if peak == 0 or corr[peak] < 0.3 * corr[0]:
        return None
    return sample_rate / peak


def extract_features(samples, sample_rate: int = WORKING_SAMPLE_RATE) -> FeatureVector:
    audio = to_mono_float32(samples)
    duration = audio.size / sample_rate if sample_rate else 0.0
    if audio.size == 0:
        return normalize_features({"duration": duration})

    frame_len = max(1, int(FRAME_SECONDS * sample_rate))
    hop = max(1, frame_len // 2)
    frame_rms = []
    pitches = []
    for start in range(0, max(1, audio.size - frame_len + 1), hop):
        frame = audio[start:start + frame_len]
        level = float(np.sqrt(np.mean(np.square(frame))))
        frame_rms.append(level)
        if level > VOICED_RMS and frame.size == frame_len:
            pitch = _frame_pitch(frame, sample_rate)
            if pitch is not None:
                pitches.append(pitch)

    spectrum = np.abs(np.fft.rfft(audio * np.hanning(audio.size))) ** 2
    freqs = np.fft.rfftfreq(audio.size, d=1.0 / sample_rate)
    total = float(np.sum(spectrum))
    if total > 0:
        centroid = float(np.sum(freqs * spectrum) / total)
        low = float(np.sum(spectrum[freqs < LOW_BAND_HZ]) / total)
        mid = float(np.sum(spectrum[(freqs >= LOW_BAND_HZ) & (freqs < HIGH_BAND_HZ)]) / total)
        high = float(np.sum(spectrum[freqs >= HIGH_BAND_HZ]) / total)
    else:
        centroid = low = mid = high = 0.0

    nyquist = sample_rate / 2.0
    return normalize_features(
        {
            "pitch": float(np.median(pitches)) if pitches else 0.0,
            "formant": 100.0 * centroid / nyquist if nyquist else 0.0,
            "energy": float(np.sqrt(np.mean(np.square(audio)))),
            "low_band": low,
            "mid_band": mid,
            "high_band": high,
            "pitch_variance": float(np.var(pitches)) if pitches else 0.0,
            "energy_variance": float(np.var(frame_rms)) if frame_rms else 0.0,
            "duration": duration,
        }
    )
