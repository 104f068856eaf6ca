from __future__ import annotations

import pytest

from analysis.motion import MotionStreamConfig, StreamState


def test_defaults():
    cfg = MotionStreamConfig()
    assert cfg.minimum_motion == 2
    assert cfg.prebuffer_s == 4.0
    assert cfg.postbuffer_s == 4.0
    assert cfg.interval_ms == 1000.0
    assert cfg.resolution is None
    assert cfg.key_frame_count == 5
    assert cfg.decode_error_policy == "no_motion"
    # prebuffer is padded by minimum_motion before the cap is derived
    assert cfg.prebuffer_window_s == 6.0
    assert cfg.prebuffer_cap == 6
    assert cfg.postbuffer_ms == 4000.0


def test_from_options_accepts_camel_case_names():
    cfg = MotionStreamConfig.from_options(
        {
            "minimumMotion": 3,
            "prebuffer": 2,
            "postbuffer": 1,
            "interval": 500,
            "resolution": [320, 240],
            "threshold": 40,
            "minChange": 0.01,
        }
    )
    assert cfg.minimum_motion == 3
    assert cfg.prebuffer_s == 2
    assert cfg.postbuffer_s == 1
    assert cfg.interval_ms == 500
    assert cfg.resolution == (320, 240)
    assert cfg.threshold == 40
    assert cfg.min_change == 0.01
    assert cfg.prebuffer_cap == 10


def test_from_options_falsy_values_fall_back_to_defaults():
    cfg = MotionStreamConfig.from_options({"minimumMotion": 0, "postbuffer": 0, "interval": None})
    assert cfg.minimum_motion == 2
    assert cfg.postbuffer_s == 4.0
    assert cfg.interval_ms == 1000.0
    assert MotionStreamConfig.from_options(None) == MotionStreamConfig()


def test_from_options_accepts_field_names():
    cfg = MotionStreamConfig.from_options({"postbuffer_s": 2, "decode_error_policy": "previous"})
    assert cfg.postbuffer_s == 2
    assert cfg.decode_error_policy == "previous"


def test_from_options_rejects_unknown_keys():
    with pytest.raises(ValueError):
        MotionStreamConfig.from_options({"fps": 30})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"minimum_motion": 0},
        {"interval_ms": 0},
        {"prebuffer_s": -1},
        {"postbuffer_s": -0.5},
        {"key_frame_count": 0},
        {"decode_error_policy": "explode"},
        {"resolution": (320,)},
    ],
)
def test_invalid_values_raise(kwargs):
    with pytest.raises(ValueError):
        MotionStreamConfig(**kwargs)


def test_zero_postbuffer_is_allowed_explicitly():
    # from_options treats 0 as "unset", the dataclass does not.
    assert MotionStreamConfig(postbuffer_s=0).postbuffer_ms == 0.0


def test_stream_state_episode_flag():
    assert not StreamState.IDLE.in_episode
    assert not StreamState.PROBING.in_episode
    assert StreamState.ACTIVE.in_episode
    assert StreamState.DRAINING.in_episode
