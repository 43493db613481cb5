"""Configuration parsing from /etc/default/fanrig, environment variables and CLI arguments."""

import argparse
import logging
import os
from dataclasses import dataclass

from dotenv import dotenv_values

from fanrig.profile import DEFAULT_PROFILE, PROFILES
from fanrig.recorder import DELIMITERS

DEFAULT_CONFIG_PATH = "/etc/default/fanrig"
DEFAULT_LOG_FILE = "fan_log.csv"


def _parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="fanrig",
        description="Simulated multi-subsystem fan control rig",
    )
    parser.add_argument(
        "--curve",
        choices=sorted(PROFILES),
        help="Control curve (overrides config file)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        help="Cycle period in seconds",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level (overrides config file)",
    )
    parser.add_argument(
        "--log-file",
        help="Path of the fan record file (truncated at startup)",
    )
    parser.add_argument(
        "--delimiter",
        choices=sorted(DELIMITERS),
        help="Field delimiter of the record file",
    )
    parser.add_argument(
        "--topology",
        help="YAML topology file; prompts interactively when omitted",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the synthetic temperature sampler",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        help="Stop after this many cycles (default: run until signalled)",
    )
    parser.add_argument(
        "--temperature",
        help="Print the fan speed the curve gives for this temperature and exit",
    )
    return parser.parse_args(argv)


@dataclass
class Config:
    """Rig configuration."""

    curve: str = DEFAULT_PROFILE
    poll_interval: float = 1.0
    log_level: str = "INFO"
    debug: bool = False
    log_file: str = DEFAULT_LOG_FILE
    delimiter: str = "comma"
    topology: str | None = None
    seed: int | None = None
    cycles: int | None = None
    temperature: str | None = None

    def __post_init__(self) -> None:
        if self.curve not in PROFILES:
            raise ValueError(
                f"Invalid curve '{self.curve}'. Must be one of: {', '.join(sorted(PROFILES))}"
            )

        if self.poll_interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {self.poll_interval}")

        if self.delimiter not in DELIMITERS:
            raise ValueError(
                f"Invalid delimiter '{self.delimiter}'. Must be one of: {', '.join(sorted(DELIMITERS))}"
            )

        if not self.log_file:
            raise ValueError("Log file path must not be empty")

        if self.cycles is not None and self.cycles <= 0:
            raise ValueError(f"Cycle count must be positive, got {self.cycles}")

        if self.debug:
            self.log_level = "DEBUG"

    @property
    def delimiter_char(self) -> str:
        return DELIMITERS[self.delimiter]

    @classmethod
    def load(cls, argv: list[str] | None = None) -> "Config":
        """Load configuration from environment file, env vars, and CLI args.

        Priority (highest to lowest):
        1. CLI arguments
        2. Environment variables
        3. /etc/default/fanrig file
        4. Dataclass defaults
        """
        file_env = {k: v for k, v in dotenv_values(DEFAULT_CONFIG_PATH).items() if v is not None}

        def env(key: str) -> str | None:
            if key in os.environ:
                return os.environ[key]
            return file_env.get(key)

        kwargs: dict[str, object] = {}

        if (v := env("CURVE")) is not None:
            kwargs["curve"] = v.lower()

        if (v := env("POLL_INTERVAL")) is not None:
            try:
                kwargs["poll_interval"] = float(v)
            except ValueError:
                pass

        if (v := env("LOG_LEVEL")) is not None:
            kwargs["log_level"] = v.upper()

        if (v := env("DEBUG")) is not None:
            kwargs["debug"] = v.lower() in ("true", "1", "yes")

        if (v := env("LOG_FILE")) is not None:
            kwargs["log_file"] = v

        if (v := env("DELIMITER")) is not None:
            kwargs["delimiter"] = v.lower()

        if (v := env("TOPOLOGY")) is not None:
            kwargs["topology"] = v or None

        if (v := env("SEED")) is not None:
            try:
                kwargs["seed"] = int(v)
            except ValueError:
                pass

        # CLI arguments override everything
        args = _parse_cli_args(argv)

        if args.curve is not None:
            kwargs["curve"] = args.curve

        if args.poll_interval is not None:
            kwargs["poll_interval"] = args.poll_interval

        if args.log_level is not None:
            kwargs["log_level"] = args.log_level

        if args.debug is True:
            kwargs["debug"] = True

        if args.log_file is not None:
            kwargs["log_file"] = args.log_file

        if args.delimiter is not None:
            kwargs["delimiter"] = args.delimiter

        if args.topology is not None:
            kwargs["topology"] = args.topology

        if args.seed is not None:
            kwargs["seed"] = args.seed

        if args.cycles is not None:
            kwargs["cycles"] = args.cycles

        if args.temperature is not None:
            kwargs["temperature"] = args.temperature

        return cls(**kwargs)

    def setup_logging(self) -> None:
        """Configure logging based on this config."""
        logging.basicConfig(
            level=getattr(logging, self.log_level),
            format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
