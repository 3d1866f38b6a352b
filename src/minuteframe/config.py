"""Configuration handling."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Optional
import yaml


@dataclass
class AudioConfig:
    sample_rate_hz: int = 16000
    block_size: int = 512
    channels: int = 1


@dataclass
class VadConfig:
    energy_threshold: float = 0.01
    speech_frames_needed: int = 5
    silence_frames_needed: int = 25
    max_utterance_seconds: float = 15.0


@dataclass
class ClusteringConfig:
    base_threshold: float = 0.35
    threshold_growth: float = 0.03
    min_separation_ratio: float = 1.3
    single_speaker_separation: float = 2.0
    learning_rate: float = 0.15
    max_speakers: int = 8


@dataclass
class LiveConfig:
    enabled: bool = True
    update_interval_s: float = 3.0
    snapshot_duration_s: float = 6.0
    min_rms: float = 0.005
    max_overlap_words: int = 15
    max_display_words: int = 300
    repetition_min_words: int = 5
    repetition_max_words: int = 10
    repetition_limit: int = 5


@dataclass
class IntelligenceConfig:
    min_transcript_chars: int = 50
    executive_sentences: int = 2
    standard_sentences: int = 5
    detailed_sentences: int = 10
    max_topics: int = 12
    max_key_points: int = 7
    chunk_words: int = 1000


@dataclass
class Config:
    base_dir: str
    device_name: Optional[str] = None
    whisper_model: str = "base"
    language: Optional[str] = None
    device: Optional[str] = None
    compute_type: Optional[str] = None
    save_audio: bool = True
    audio: AudioConfig = field(default_factory=AudioConfig)
    vad: VadConfig = field(default_factory=VadConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    live: LiveConfig = field(default_factory=LiveConfig)
    intelligence: IntelligenceConfig = field(default_factory=IntelligenceConfig)


def _section(cls, data: Optional[dict]):
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (data or {}).items() if k in known})


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    return Config(
        base_dir=data.get("base_dir", ""),
        device_name=data.get("device_name"),
        whisper_model=data.get("whisper_model", "base"),
        language=data.get("language"),
        device=data.get("device"),
        compute_type=data.get("compute_type"),
        save_audio=bool(data.get("save_audio", True)),
        audio=_section(AudioConfig, data.get("audio")),
        vad=_section(VadConfig, data.get("vad")),
        clustering=_section(ClusteringConfig, data.get("clustering")),
        live=_section(LiveConfig, data.get("live")),
        intelligence=_section(IntelligenceConfig, data.get("intelligence")),
    )


def save_config(path: str, config: Config) -> None:
    data = asdict(config)
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
