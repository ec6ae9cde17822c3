"""Encoder (ffmpeg) invocation for live HLS + DASH output."""

from dataclasses import dataclass
from pathlib import Path

from streambridge.models.enums import StreamQuality

# Segment length in seconds and number of segments kept in the live window.
SEGMENT_SECONDS = 4
LIVE_WINDOW_SEGMENTS = 5


@dataclass(frozen=True)
class QualityProfile:
    width: int
    height: int
    bitrate: str
    bufsize: str


QUALITY_PROFILES: dict[StreamQuality, QualityProfile] = {
    StreamQuality.P1080: QualityProfile(1920, 1080, "4000k", "8000k"),
    StreamQuality.P720: QualityProfile(1280, 720, "2500k", "5000k"),
    StreamQuality.P480: QualityProfile(854, 480, "1000k", "2000k"),
}


@dataclass(frozen=True)
class OutputPaths:
    hls_dir: Path
    dash_dir: Path
    hls_manifest: Path
    dash_manifest: Path


def output_paths(stream_id: str, output_dir: Path) -> OutputPaths:
    """Manifest locations are a pure function of the stream id."""
    hls_dir = output_dir / "hls"
    dash_dir = output_dir / "dash"
    return OutputPaths(
        hls_dir=hls_dir,
        dash_dir=dash_dir,
        hls_manifest=hls_dir / f"{stream_id}.m3u8",
        dash_manifest=dash_dir / f"{stream_id}.mpd",
    )


def _video_args(quality: StreamQuality) -> list[str]:
    profile = QUALITY_PROFILES[quality]
    return [
        "-c:v", "libx264",
        "-c:a", "aac",
        "-preset", "fast",
        "-tune", "zerolatency",
        "-profile:v", "baseline",
        "-level", "3.0",
        "-pix_fmt", "yuv420p",
        "-vf", f"scale={profile.width}:{profile.height}",
        "-b:v", profile.bitrate,
        "-maxrate", profile.bitrate,
        "-bufsize", profile.bufsize,
    ]


def build_encoder_args(
    stream_id: str,
    source_url: str,
    quality: StreamQuality | str,
    paths: OutputPaths,
) -> list[str]:
    """Build the argument list (without the binary) for one live stream.

    Both outputs delete segments that fall out of the live window, so disk usage
    of a running stream stays bounded. Every file written starts with the
    stream id.
    """
    quality = StreamQuality(quality)
    args = ["-hide_banner", "-nostdin", "-loglevel", "warning", "-i", source_url]

    args += _video_args(quality)
    args += [
        "-f", "hls",
        "-hls_time", str(SEGMENT_SECONDS),
        "-hls_list_size", str(LIVE_WINDOW_SEGMENTS),
        "-hls_flags", "delete_segments",
        "-hls_allow_cache", "0",
        "-hls_segment_filename", str(paths.hls_dir / f"{stream_id}_%05d.ts"),
        str(paths.hls_manifest),
    ]

    args += _video_args(quality)
    args += [
        "-f", "dash",
        "-seg_duration", str(SEGMENT_SECONDS),
        "-window_size", str(LIVE_WINDOW_SEGMENTS),
        "-extra_window_size", "0",
        "-init_seg_name", f"{stream_id}_init_$RepresentationID$.m4s",
        "-media_seg_name", f"{stream_id}_chunk_$RepresentationID$_$Number%05d$.m4s",
        str(paths.dash_manifest),
    ]
    return args
