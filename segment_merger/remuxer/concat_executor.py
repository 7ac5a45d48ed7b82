"""
Concat/mux stages executed with PyAV.

Three operations cover every stage of a ConcatenationPlan:

- ``stream_copy``: remux a single input without touching the codecs
  (single-segment groups, and the final stage when only one group
  survived)
- ``concat_copy``: lossless concat of same-codec inputs through the
  concat demuxer and a ``file '<path>'`` manifest
- ``concat_transcode``: concat through the same demuxer, re-encoding to
  the configured video/audio codec pair so that groups captured with
  different parameters can be joined

Every failure is reported as ``MergeError``; nothing is retried here.
"""

import logging
from fractions import Fraction
from pathlib import Path
from typing import Union

import av
from av.audio.resampler import AudioResampler

from segment_merger.configs import EncodeConfig
from segment_merger.errors import MergeError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_REMUX_STREAM_TYPES = ("video", "audio")
_DEFAULT_FRAME_RATE = Fraction(25)
_DEFAULT_SAMPLE_RATE = 48000
_OUTPUT_PIXEL_FORMAT = "yuv420p"
_OUTPUT_LAYOUT = "stereo"


def _open_concat(manifest: PathLike):
    return av.open(str(manifest), format="concat", options={"safe": "0"})


def _remove_partial(dst: PathLike) -> None:
    Path(dst).unlink(missing_ok=True)


def _remux(input_container, dst: PathLike) -> int:
    """Copy every audio/video packet of ``input_container`` into ``dst``."""
    selected = [s for s in input_container.streams if s.type in _REMUX_STREAM_TYPES]
    if not selected:
        raise MergeError(f"No audio or video stream to write into {dst}")

    muxed = 0
    with av.open(str(dst), mode="w") as output:
        stream_map = {s.index: output.add_stream_from_template(s) for s in selected}
        for packet in input_container.demux(*selected):
            # The demuxer yields an empty flush packet per stream at EOF
            if packet.dts is None:
                continue
            packet.stream = stream_map[packet.stream.index]
            output.mux(packet)
            muxed += 1
    return muxed


def stream_copy(src: PathLike, dst: PathLike) -> Path:
    """Remux a single file into ``dst``; the container follows the extension."""
    try:
        with av.open(str(src)) as input_container:
            packets = _remux(input_container, dst)
    except (av.error.FFmpegError, OSError, ValueError) as e:
        _remove_partial(dst)
        raise MergeError(f"Stream copy {src} -> {dst} failed: {e}") from e
    logger.debug("[concat_executor] Stream copy %s -> %s (%d packets)", src, dst, packets)
    return Path(dst)


def concat_copy(manifest: PathLike, dst: PathLike) -> Path:
    """Losslessly concatenate the files listed in ``manifest`` into ``dst``."""
    try:
        with _open_concat(manifest) as input_container:
            packets = _remux(input_container, dst)
    except (av.error.FFmpegError, OSError, ValueError) as e:
        _remove_partial(dst)
        raise MergeError(f"Concat of {manifest} -> {dst} failed: {e}") from e
    logger.debug("[concat_executor] Concat copy %s -> %s (%d packets)", manifest, dst, packets)
    return Path(dst)


def _parse_bitrate(bitrate_str: str) -> int:
    """Parse a bitrate string like '4M', '128k', '5000000' to int bits/s."""
    s = bitrate_str.strip().lower()
    if s.endswith("m"):
        return int(float(s[:-1]) * 1_000_000)
    if s.endswith("k"):
        return int(float(s[:-1]) * 1_000)
    return int(s)


class _ConcatTranscoder:
    """
    Re-encodes the first video and first audio stream of a concat input.

    Output timestamps are regenerated from frame and sample counts, which
    keeps them monotonic across the joins between inputs whose clocks
    differ.
    """

    def __init__(self, input_container, output, encode: EncodeConfig) -> None:
        self._output = output
        self._video_in = next(iter(input_container.streams.video), None)
        self._audio_in = next(iter(input_container.streams.audio), None)
        self._video_out = None
        self._audio_out = None
        self._resamplers: dict = {}
        self._frames = 0
        self._samples = 0

        if self._video_in is not None:
            rate = self._video_in.average_rate or _DEFAULT_FRAME_RATE
            ctx = self._video_in.codec_context
            stream = output.add_stream(encode.video_codec, rate=rate)
            # H.264 requires even dimensions
            stream.width = ctx.width + ctx.width % 2
            stream.height = ctx.height + ctx.height % 2
            stream.pix_fmt = _OUTPUT_PIXEL_FORMAT
            stream.codec_context.time_base = 1 / Fraction(rate)
            stream.options = {"preset": encode.video_preset, "crf": str(encode.video_crf)}
            self._video_out = stream

        if self._audio_in is not None:
            rate = self._audio_in.codec_context.sample_rate or _DEFAULT_SAMPLE_RATE
            stream = output.add_stream(encode.audio_codec, rate=rate)
            stream.codec_context.layout = _OUTPUT_LAYOUT
            stream.codec_context.bit_rate = _parse_bitrate(encode.audio_bitrate)
            self._audio_out = stream

        logger.info(
            "[concat_executor] Transcoding to %s/%s (%s)",
            encode.video_codec if self._video_out is not None else "-",
            encode.audio_codec if self._audio_out is not None else "-",
            output.name,
        )

    @property
    def input_streams(self) -> list:
        return [s for s in (self._video_in, self._audio_in) if s is not None]

    def _encode_video(self, frame) -> None:
        stream = self._video_out
        frame = frame.reformat(width=stream.width, height=stream.height, format=_OUTPUT_PIXEL_FORMAT)
        frame.pts = self._frames
        frame.time_base = stream.codec_context.time_base
        self._frames += 1
        self._output.mux(stream.encode(frame))

    def _mux_audio(self, frames) -> None:
        stream = self._audio_out
        for resampled in frames:
            resampled.pts = self._samples
            resampled.time_base = Fraction(1, stream.codec_context.sample_rate)
            self._samples += resampled.samples
            self._output.mux(stream.encode(resampled))

    def _encode_audio(self, frame) -> None:
        ctx = self._audio_out.codec_context
        key = (frame.format.name, frame.layout.name, frame.sample_rate)
        resampler = self._resamplers.get(key)
        if resampler is None:
            resampler = AudioResampler(format=ctx.format.name, layout=ctx.layout.name, rate=ctx.sample_rate)
            self._resamplers[key] = resampler
        self._mux_audio(resampler.resample(frame))

    def run(self, input_container) -> None:
        for packet in input_container.demux(*self.input_streams):
            if packet.dts is None:
                continue
            try:
                frames = packet.decode()
            except av.error.InvalidDataError as e:
                logger.debug("[concat_executor] Decode error (skipping packet): %s", e)
                continue
            for frame in frames:
                if self._video_in is not None and packet.stream.index == self._video_in.index:
                    self._encode_video(frame)
                else:
                    self._encode_audio(frame)
        self.flush()

    def flush(self) -> None:
        if self._video_out is not None:
            self._output.mux(self._video_out.encode(None))
        if self._audio_out is not None:
            for resampler in self._resamplers.values():
                self._mux_audio(resampler.resample(None))
            self._output.mux(self._audio_out.encode(None))


def concat_transcode(manifest: PathLike, dst: PathLike, encode: EncodeConfig) -> Path:
    """Concatenate the files listed in ``manifest`` into ``dst``, re-encoding video and audio."""
    try:
        with _open_concat(manifest) as input_container, av.open(str(dst), mode="w") as output:
            transcoder = _ConcatTranscoder(input_container, output, encode)
            if not transcoder.input_streams:
                raise MergeError(f"No audio or video stream in {manifest}")
            transcoder.run(input_container)
    except (av.error.FFmpegError, OSError, ValueError) as e:
        _remove_partial(dst)
        raise MergeError(f"Transcoding concat of {manifest} -> {dst} failed: {e}") from e
    except MergeError:
        _remove_partial(dst)
        raise
    return Path(dst)
