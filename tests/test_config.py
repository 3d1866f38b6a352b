import os
import tempfile

from minuteframe.config import Config, load_config, save_config


def test_save_and_load_config_roundtrip():
    cfg = Config(base_dir="/tmp/meetings")
    cfg.whisper_model = "small"
    cfg.vad.energy_threshold = 0.02
    cfg.clustering.max_speakers = 4
    cfg.live.enabled = False

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "minuteframe_config.yml")
        save_config(path, cfg)
        loaded = load_config(path)

    assert loaded.base_dir == "/tmp/meetings"
    assert loaded.whisper_model == "small"
    assert loaded.vad.energy_threshold == 0.02
    assert loaded.clustering.max_speakers == 4
    assert loaded.live.enabled is False
    assert loaded.intelligence.min_transcript_chars == 50


def test_load_config_ignores_unknown_keys_and_fills_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "base_dir: out\n"
        "vad:\n"
        "  silence_frames_needed: 10\n"
        "  lookahead: 3\n"
        "unknown_section:\n"
        "  x: 1\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.base_dir == "out"
    assert cfg.vad.silence_frames_needed == 10
    assert cfg.vad.speech_frames_needed == 5
    assert cfg.audio.sample_rate_hz == 16000


def test_load_empty_config(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")
    cfg = load_config(str(path))
    assert cfg.base_dir == ""
    assert cfg.clustering.base_threshold == 0.35
