import argparse
import logging

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation

from analysis.config import DisplayMode, load_config, preset_for
from mic_analyzer import MicAnalyzer
from tuner.controller import Tuner
from tuner.tuner_plotter import update_view
from utils.music_utils import FrequencyMapper

logger = logging.getLogger(__name__)


class TunerWindow:
    """Matplotlib window polling the tuner at the display refresh rate."""

    def __init__(self, tuner, mic, fps=30):
        self.tuner = tuner
        self.mic = mic
        self.sample_rate = tuner.config.sample_rate
        self.mapper = FrequencyMapper(inset=tuner.config.display_inset)

        self.fig, self.ax = plt.subplots(figsize=(8, 4))
        self.canvas = self.fig.canvas
        self.canvas.mpl_connect("key_press_event", self.on_key)
        self.canvas.mpl_connect("close_event", lambda _evt: self.mic.stop())
        self.anim = FuncAnimation(
            self.fig, self.refresh, interval=int(1000 / fps), cache_frame_data=False
        )

    def refresh(self, _frame):
        update_view(self, self.tuner.snapshot())

    def on_key(self, event):
        # space: start/stop, c: clear, r: recalibrate, m: next display mode
        if event.key == " ":
            if self.mic.is_running:
                self.mic.stop()
            else:
                self.mic.start()
        elif event.key == "c":
            self.mic.stop()
            self.tuner.clear()
        elif event.key == "r":
            self.tuner.recalibrate()
        elif event.key == "m":
            self.next_mode()

    def next_mode(self):
        modes = list(DisplayMode)
        mode = modes[(modes.index(self.tuner.mode) + 1) % len(modes)]
        self.mic.set_mode(mode)
        self.sample_rate = self.tuner.config.sample_rate
        self.mapper = FrequencyMapper(inset=self.tuner.config.display_inset)
        logger.info("display mode: %s", mode.value)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Live voice pitch trail")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in DisplayMode],
        default=DisplayMode.CALIBRATED_PITCH.value,
    )
    parser.add_argument("--config", help="JSON file with detector overrides")
    parser.add_argument("--device", default=None, help="input device name or index")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    mode = DisplayMode(args.mode)
    config = load_config(args.config, mode) if args.config else preset_for(mode)

    # ------------------------------------------------------------
    # 1. Tuner (session owner) + microphone front end
    # ------------------------------------------------------------
    tuner = Tuner(config=config, mode=mode)
    device = int(args.device) if args.device and args.device.isdigit() else args.device
    mic = MicAnalyzer(tuner, block_size=config.frame_size // 2, device=device)
    logger.info(
        "mode %s, %d Hz, frame %d, device %s",
        mode.value, config.sample_rate, config.frame_size,
        "default" if device is None else device,
    )

    # ------------------------------------------------------------
    # 2. Window (render cadence)
    # ------------------------------------------------------------
    # the window must stay referenced or its FuncAnimation is garbage collected
    win = TunerWindow(tuner, mic)
    mic.start()
    try:
        plt.show()
    finally:
        mic.stop()


if __name__ == "__main__":
    main()
