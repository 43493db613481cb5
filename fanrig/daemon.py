"""Main entry point: configure the rig, then run the control cycle on a fixed period."""

import asyncio
import logging
import signal
import sys
import threading
import time
from typing import TextIO

from fanrig.config import Config
from fanrig.configure import (
    ConfigurationBuilder,
    ConsolePrompter,
    Prompter,
    describe_topology,
    load_topology,
)
from fanrig.cycle import CycleRunner
from fanrig.display import INVALID_TEMPERATURE, ConsoleDisplay, fan_speed_label
from fanrig.model import Subsystem
from fanrig.profile import PROFILES
from fanrig.recorder import CsvRecorder
from fanrig.temperature import RandomSampler, TemperatureSampler

log = logging.getLogger(__name__)


class Daemon:
    """Ties together configuration, the cycle runner, the recorder and the display."""

    def __init__(
        self,
        config: Config,
        sampler: TemperatureSampler | None = None,
        display: ConsoleDisplay | None = None,
        prompter: Prompter | None = None,
    ) -> None:
        self._config = config
        self._display = display if display is not None else ConsoleDisplay()
        self._prompter = prompter
        self._recorder = CsvRecorder(config.log_file, config.delimiter_char)
        self._runner = CycleRunner(
            sampler if sampler is not None else RandomSampler(config.seed),
            curve=PROFILES[config.curve],
            recorder=self._recorder,
            display=self._display,
        )
        self._running = True

    @property
    def runner(self) -> CycleRunner:
        return self._runner

    def stop(self) -> None:
        """Ask the loop to exit once the in-flight cycle has finished."""
        self._running = False

    def _on_shutdown(self, signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        log.info("Received %s, shutting down", sig_name)
        self.stop()

    def _on_reload(self, _signum: int, _frame: object) -> None:
        log.info("Received SIGHUP, reloading configuration")
        try:
            config = Config.load([])
            self._config.curve = config.curve
            self._runner.curve = PROFILES[config.curve]
            log.info("Configuration reloaded: curve=%s", config.curve)
        except (ValueError, KeyError) as e:
            log.error("Failed to reload configuration: %s", e)

    def _install_signal_handlers(self) -> dict[int, object]:
        """Install handlers and return the previous ones so they can be restored."""
        if threading.current_thread() is not threading.main_thread():
            log.debug("Not on the main thread, signal handlers not installed")
            return {}

        handlers = {signal.SIGTERM: self._on_shutdown, signal.SIGINT: self._on_shutdown}
        if hasattr(signal, "SIGHUP"):
            handlers[signal.SIGHUP] = self._on_reload
        return {signum: signal.signal(signum, handler) for signum, handler in handlers.items()}

    def _restore_signal_handlers(self, previous: dict[int, object]) -> None:
        for signum, handler in previous.items():
            # None means the old handler was not installed from Python
            if handler is not None:
                signal.signal(signum, handler)

    def _build_topology(self) -> list[Subsystem]:
        if self._config.topology:
            log.info("Loading topology from %s", self._config.topology)
            return load_topology(self._config.topology)

        prompter = self._prompter if self._prompter is not None else ConsolePrompter()
        return asyncio.run(ConfigurationBuilder(prompter).build())

    def _wait(self, seconds: float) -> None:
        """Sleep in small increments so we can respond to signals promptly."""
        end = time.monotonic() + seconds
        while self._running and time.monotonic() < end:
            time.sleep(max(0.0, min(0.5, end - time.monotonic())))

    def run(self) -> None:
        """Configure, then tick once per period until stopped.

        Signal handlers are only installed once configuration is done, so
        Ctrl-C during the prompts still aborts with KeyboardInterrupt.
        """
        subsystems = self._build_topology()
        summary = describe_topology(subsystems)
        log.info("Topology:\n%s", summary or "(no subsystems)")
        self._display.show(summary)

        self._recorder.initialize()
        self._runner.configure(subsystems)

        previous = self._install_signal_handlers()
        try:
            self._loop()
        finally:
            self._restore_signal_handlers(previous)

    def _loop(self) -> None:
        log.info(
            "Starting control loop with curve=%s, poll_interval=%.1fs, record file=%s",
            self._config.curve,
            self._config.poll_interval,
            self._config.log_file,
        )

        completed = 0
        deadline = time.monotonic()
        while self._running:
            if self._runner.tick() is not None:
                completed += 1
            if self._config.cycles is not None and completed >= self._config.cycles:
                break

            # Late cycles drop the missed ticks rather than bursting to catch up
            deadline = max(deadline + self._config.poll_interval, time.monotonic())
            self._wait(deadline - time.monotonic())

        log.info("Control loop stopped after %d cycles", completed)


def check_temperature(config: Config, stream: TextIO | None = None) -> bool:
    """Print the fan speed the configured curve gives for ``config.temperature``.

    Returns False (after printing the invalid-input message) when the value
    is not a number.
    """
    label = fan_speed_label(PROFILES[config.curve], config.temperature or "")
    print(label, file=stream if stream is not None else sys.stdout)
    return label != INVALID_TEMPERATURE


def main() -> None:
    """Entry point."""
    try:
        config = Config.load()
    except (ValueError, SystemExit) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    config.setup_logging()
    if config.temperature is not None:
        sys.exit(0 if check_temperature(config) else 1)

    try:
        Daemon(config).run()
    except (ValueError, OSError) as e:
        log.error("Startup failed: %s", e)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        log.info("Configuration aborted")
        sys.exit(130)


if __name__ == "__main__":
    main()
