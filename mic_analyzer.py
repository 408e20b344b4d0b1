# mic_analyzer.py
import logging
import queue
import threading
from typing import Any, Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)


def _input_stream(**kwargs):
    # PortAudio is loaded on import, so only touch it when a stream is opened
    import sounddevice as sd

    return sd.InputStream(**kwargs)


class MicAnalyzer:
    """
    Microphone front end for a Tuner.

    The sounddevice callback only copies the block into a bounded queue; a
    worker thread drains the queue and drives the tuner's frame cadence.
    """

    def __init__(
        self,
        tuner,
        sample_rate: Optional[int] = None,
        block_size: int = 1024,
        queue_max: int = 16,
        device: Optional[Any] = None,
        stream_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.tuner = tuner
        # frames are built at the config rate, so the stream must match it
        if sample_rate is not None and int(sample_rate) != tuner.config.sample_rate:
            raise ValueError(
                f"sample_rate {sample_rate} does not match the tuner config "
                f"({tuner.config.sample_rate} Hz)"
            )
        self.sample_rate = int(tuner.config.sample_rate)
        self.block_size = int(block_size)
        self.device = device
        self.stream_factory = stream_factory or _input_stream
        self.stream: Optional[Any] = None

        self.block_queue: queue.Queue = queue.Queue(maxsize=int(queue_max))
        self._worker_stop = threading.Event()
        self._worker: Optional[threading.Thread] = None

        self.dropped_blocks = 0
        self.is_running = False

    # -------------------------
    # Audio callback (fast)
    # -------------------------
    def audio_callback(
        self, indata: np.ndarray, _frames: int, _time_info: Any, status: Any
    ) -> None:
        """Sounddevice callback: copy channel 0 and hand it to the worker."""
        try:
            if status:
                logger.debug("input stream status: %s", status)

            block = np.array(indata[:, 0], dtype=float, copy=True)
            # tag with the session live at capture time
            item = (self.tuner.generation, self.tuner.clock(), block)

            try:
                self.block_queue.put_nowait(item)
            except queue.Full:
                # drop oldest so the display stays live
                try:
                    self.block_queue.get_nowait()
                    self.dropped_blocks += 1
                except queue.Empty:
                    pass
                try:
                    self.block_queue.put_nowait(item)
                except queue.Full:
                    self.dropped_blocks += 1
        except Exception:  # noqa: BLE001
            logger.exception("MicAnalyzer audio callback failed")

    # -------------------------
    # Worker thread
    # -------------------------
    def _processing_worker(self) -> None:
        """Background worker: feed queued blocks to the tuner."""
        while not self._worker_stop.is_set():
            try:
                generation, timestamp, block = self.block_queue.get(timeout=0.2)
            except queue.Empty:
                continue

            try:
                if generation is None:
                    continue
                self.tuner.process_samples(
                    block, timestamp=timestamp, generation=generation
                )
            except Exception:  # noqa: BLE001
                logger.exception("Processing worker failed while handling a block")
            finally:
                self.block_queue.task_done()

    def _drain(self) -> None:
        while True:
            try:
                self.block_queue.get_nowait()
                self.block_queue.task_done()
            except queue.Empty:
                return

    # -------------------------
    # Public control
    # -------------------------
    def start(self) -> None:
        """Start a tuner session, the worker thread and the audio stream."""
        if self.is_running:
            return

        self._drain()
        self.tuner.start()

        if self._worker is None or not self._worker.is_alive():
            self._worker_stop.clear()
            self._worker = threading.Thread(
                target=self._processing_worker, daemon=True
            )
            self._worker.start()
            logger.info("MicAnalyzer worker started")

        try:
            self.stream = self.stream_factory(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self.audio_callback,
            )
            self.stream.start()
            self.is_running = True
            logger.info(
                "MicAnalyzer audio stream started at %d Hz blocksize %d",
                self.sample_rate,
                self.block_size,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to start audio stream")
            self.stop()
            self.tuner.clear()

    def stop(self) -> None:
        """Stop audio stream and worker, then end the tuner session. Idempotent."""
        stream, self.stream = self.stream, None
        if stream is not None:
            try:
                if getattr(stream, "active", False):
                    stream.stop()
                stream.close()
                logger.info("MicAnalyzer audio stream stopped")
            except Exception:  # noqa: BLE001
                logger.exception("Error stopping audio stream")

        worker, self._worker = self._worker, None
        if worker is not None:
            self._worker_stop.set()
            worker.join(timeout=1.0)
            logger.info("MicAnalyzer worker stopped")

        # nothing queued for the old session may reach the next one
        self._drain()
        self.tuner.stop()
        self.is_running = False

    def set_mode(self, mode, config=None) -> None:
        """Switch the tuner's display mode, reopening the stream if running."""
        running = self.is_running
        if running:
            self.stop()
        self.tuner.set_mode(mode, config)
        self.sample_rate = int(self.tuner.config.sample_rate)
        if running:
            self.start()
