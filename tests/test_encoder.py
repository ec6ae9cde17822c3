"""Tests for encoder argument construction."""

from pathlib import Path

import pytest

from streambridge.models.enums import StreamQuality
from streambridge.services.encoder import QUALITY_PROFILES, build_encoder_args, output_paths

STREAM_ID = "strm_0123456789abcdef"
SOURCE = "rtmp://ingest.example.com/live/key"


def _value_after(args: list[str], flag: str, occurrence: int = 0) -> str:
    positions = [i for i, a in enumerate(args) if a == flag]
    return args[positions[occurrence] + 1]


def test_output_paths_are_derived_from_stream_id():
    paths = output_paths(STREAM_ID, Path("/srv/streams"))
    assert paths.hls_manifest == Path("/srv/streams/hls/strm_0123456789abcdef.m3u8")
    assert paths.dash_manifest == Path("/srv/streams/dash/strm_0123456789abcdef.mpd")


@pytest.mark.parametrize(
    "quality, scale, bitrate, bufsize",
    [
        ("1080p", "scale=1920:1080", "4000k", "8000k"),
        ("720p", "scale=1280:720", "2500k", "5000k"),
        ("480p", "scale=854:480", "1000k", "2000k"),
    ],
)
def test_quality_tiers(quality, scale, bitrate, bufsize):
    args = build_encoder_args(STREAM_ID, SOURCE, quality, output_paths(STREAM_ID, Path("out")))
    # Both outputs carry the same tier parameters
    for occurrence in (0, 1):
        assert _value_after(args, "-vf", occurrence) == scale
        assert _value_after(args, "-b:v", occurrence) == bitrate
        assert _value_after(args, "-maxrate", occurrence) == bitrate
        assert _value_after(args, "-bufsize", occurrence) == bufsize


def test_every_quality_has_a_profile():
    assert set(QUALITY_PROFILES) == set(StreamQuality)


def test_unknown_quality_rejected():
    with pytest.raises(ValueError):
        build_encoder_args(STREAM_ID, SOURCE, "4k", output_paths(STREAM_ID, Path("out")))


def test_live_window_is_bounded():
    args = build_encoder_args(STREAM_ID, SOURCE, "720p", output_paths(STREAM_ID, Path("out")))
    assert _value_after(args, "-i") == SOURCE
    assert _value_after(args, "-hls_list_size") == "5"
    assert _value_after(args, "-hls_flags") == "delete_segments"
    assert _value_after(args, "-window_size") == "5"
    assert _value_after(args, "-extra_window_size") == "0"
    assert args[-1].endswith(f"{STREAM_ID}.mpd")


def test_all_written_files_start_with_stream_id():
    args = build_encoder_args(STREAM_ID, SOURCE, "480p", output_paths(STREAM_ID, Path("out")))
    assert Path(_value_after(args, "-hls_segment_filename")).name.startswith(STREAM_ID)
    assert _value_after(args, "-init_seg_name").startswith(STREAM_ID)
    assert _value_after(args, "-media_seg_name").startswith(STREAM_ID)
