"""
Frame boundary for the deceived filters
CIELab conversion, image / video file processing and benchmarking

Frames come in as uint8 BGR (OpenCV) or RGB (ComfyUI) and are filtered in the
float CIELab space (L in [0, 100], a/b in [-127, 127]), which is the scale the
default range_sigma = 10 is meant for. Grayscale frames are scaled to [0, 100]
to stay on the same scale as L.
"""

import logging
import time
from pathlib import Path
from typing import List, Optional, Union

import cv2
import numpy as np

from .config import DeWAFFConfig
from .validation import InputMismatchError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Timer:
    """Caller-owned wall clock timer for benchmarks"""

    def __init__(self):
        self._start = None
        self.elapsed = 0.0

    def start(self):
        """Start the timer and reset the elapsed time"""
        self._start = time.perf_counter()
        self.elapsed = 0.0

    def stop(self) -> float:
        """Stop the timer and return the elapsed seconds"""
        if self._start is None:
            raise RuntimeError("Timer.stop() called before Timer.start()")
        self.elapsed = time.perf_counter() - self._start
        self._start = None
        return self.elapsed

    @property
    def running(self) -> bool:
        return self._start is not None


def output_file_name(input_path: PathLike, filter_type: str, video: bool = False) -> Path:
    """<stem>_<ACRONYM>.png for images, <stem>_<ACRONYM>.avi for videos"""
    input_path = Path(input_path)
    extension = '.avi' if video else '.png'
    return input_path.with_name(f"{input_path.stem}_{filter_type}{extension}")


class FrameProcessor:
    """Runs the configured deceived filter on 8-bit frames"""

    def __init__(self, config: Optional[DeWAFFConfig] = None, channel_order: str = 'BGR'):
        self.config = (config or DeWAFFConfig()).validate()
        if channel_order not in ('BGR', 'RGB'):
            raise ValueError(f"channel_order must be 'BGR' or 'RGB', got {channel_order!r}")
        self.channel_order = channel_order

    # -- color space boundary --------------------------------------------------

    def pre_process(self, frame: np.ndarray) -> np.ndarray:
        """uint8 frame -> float32 CIELab (or L-scaled gray)"""
        frame = np.asarray(frame)
        if frame.dtype != np.uint8:
            raise InputMismatchError(f"Input frame must be uint8 in [0, 255], got {frame.dtype}")
        if frame.ndim == 3 and frame.shape[2] == 1:
            frame = frame[:, :, 0]
        if frame.ndim == 2:
            return frame.astype(np.float32) * (100.0 / 255.0)
        if frame.ndim != 3 or frame.shape[2] != 3:
            raise InputMismatchError(
                f"Input frame must be a grayscale or 3 channel image, got shape {frame.shape}"
            )

        # Normalize to [0,1] before the Lab conversion
        normalized = frame.astype(np.float32) / 255.0
        code = cv2.COLOR_BGR2Lab if self.channel_order == 'BGR' else cv2.COLOR_RGB2Lab
        return cv2.cvtColor(normalized, code)

    def post_process(self, lab: np.ndarray) -> np.ndarray:
        """float32 CIELab (or L-scaled gray) -> uint8 frame"""
        lab = np.asarray(lab, dtype=np.float32)
        if lab.ndim == 2:
            return np.clip(lab * (255.0 / 100.0) + 0.5, 0, 255).astype(np.uint8)

        code = cv2.COLOR_Lab2BGR if self.channel_order == 'BGR' else cv2.COLOR_Lab2RGB
        converted = cv2.cvtColor(np.ascontiguousarray(lab), code)
        return np.clip(converted * 255.0 + 0.5, 0, 255).astype(np.uint8)

    # -- processing ------------------------------------------------------------

    def process_frame(self, frame: np.ndarray) -> np.ndarray:
        """Filter one uint8 frame, returns a uint8 frame of the same shape"""
        squeeze = frame.ndim == 3 and frame.shape[2] == 1
        working = self.pre_process(frame)
        filtered = self.config.apply(working)
        output = self.post_process(filtered)
        return output[:, :, np.newaxis] if squeeze else output

    def process_image_file(self, input_path: PathLike, output_path: Optional[PathLike] = None) -> Path:
        """Read, filter and write an image file; returns the output path"""
        frame = self._read_image(input_path)
        logger.info(f"Processing image {input_path} ({frame.shape[1]}x{frame.shape[0]}) "
                    f"with the {self.config.display_name}")

        output = self.process_frame(frame)

        output_path = Path(output_path) if output_path else output_file_name(input_path, self.config.acronym)
        if not cv2.imwrite(str(output_path), output):
            raise IOError(f"Could not open the output file for write: {output_path}")

        logger.info(f"Processing done: {output_path}")
        return output_path

    def process_video_file(self, input_path: PathLike, output_path: Optional[PathLike] = None) -> Path:
        """Filter a video frame by frame; returns the output path"""
        capture = self._open_video(input_path)
        output_path = Path(output_path) if output_path else output_file_name(input_path, self.config.acronym, video=True)

        info = video_info(capture)
        logger.info(f"Processing video {input_path}: {info['width']}x{info['height']}, "
                    f"{info['frame_count']} frames at {info['fps']} fps, codec {info['codec']!r}")

        codec = info['codec']
        if len(codec) != 4:
            logger.warning(f"Unknown input codec {codec!r}, writing MJPG instead")
            codec = 'MJPG'
        fourcc = cv2.VideoWriter_fourcc(*codec)
        writer = cv2.VideoWriter(str(output_path), fourcc, info['fps'] or 25.0,
                                 (info['width'], info['height']), True)
        try:
            if not writer.isOpened():
                raise IOError(f"Could not open the output video for write: {output_path}")

            processed = 0
            while True:
                ok, frame = capture.read()
                if not ok:
                    break
                writer.write(self.process_frame(frame))
                processed += 1
                logger.debug(f"Frame {processed}/{info['frame_count']} done")
        finally:
            capture.release()
            writer.release()

        logger.info(f"Processing done: {processed} frames written to {output_path}")
        return output_path

    # -- benchmarking ----------------------------------------------------------

    def benchmark_image(self, input_path: PathLike, iterations: int,
                        timer: Optional[Timer] = None) -> List[float]:
        """Time `iterations` runs of the filter on one image, in seconds"""
        if iterations < 1:
            raise ValueError("The number of benchmark iterations needs to be 1 or greater")
        frame = self._read_image(input_path)
        timer = timer or Timer()

        elapsed = []
        for _ in range(iterations):
            timer.start()
            self.process_frame(frame)
            elapsed.append(timer.stop())
        return elapsed

    def benchmark_video(self, input_path: PathLike, iterations: int,
                        timer: Optional[Timer] = None) -> List[float]:
        """Time `iterations` full passes over a video, in seconds"""
        if iterations < 1:
            raise ValueError("The number of benchmark iterations needs to be 1 or greater")
        timer = timer or Timer()

        elapsed = []
        for _ in range(iterations):
            capture = self._open_video(input_path)
            try:
                timer.start()
                while True:
                    ok, frame = capture.read()
                    if not ok:
                        break
                    self.process_frame(frame)
                elapsed.append(timer.stop())
            finally:
                capture.release()
        return elapsed

    # -- helpers ---------------------------------------------------------------

    @staticmethod
    def _read_image(input_path: PathLike) -> np.ndarray:
        frame = cv2.imread(str(input_path), cv2.IMREAD_UNCHANGED)
        if frame is None:
            raise FileNotFoundError(f"Could not open the input file for read: {input_path}")
        if frame.dtype != np.uint8:
            # Full range of the storage type to 8 bits; float images are taken as [0, 1]
            if np.issubdtype(frame.dtype, np.integer):
                alpha = 255.0 / np.iinfo(frame.dtype).max
            else:
                alpha = 255.0
            frame = cv2.convertScaleAbs(frame, alpha=alpha)
        if frame.ndim == 3 and frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
        return frame

    @staticmethod
    def _open_video(input_path: PathLike) -> cv2.VideoCapture:
        capture = cv2.VideoCapture(str(input_path))
        if not capture.isOpened():
            raise FileNotFoundError(f"Could not open the input video for read: {input_path}")
        return capture


def video_info(capture: cv2.VideoCapture) -> dict:
    """Frame rate, frame count, size and fourcc codec of an open capture"""
    codec = int(capture.get(cv2.CAP_PROP_FOURCC))
    codec_string = ''.join(chr((codec >> (8 * i)) & 0xFF) for i in range(4)).strip('\x00')
    return {
        'fps': float(capture.get(cv2.CAP_PROP_FPS)),
        'frame_count': int(capture.get(cv2.CAP_PROP_FRAME_COUNT)),
        'width': int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
        'height': int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        'codec': codec_string,
    }
