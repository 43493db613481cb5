"""Building the subsystem topology, interactively or from a YAML file."""

import logging
import sys
from pathlib import Path
from typing import Protocol, TextIO

import yaml

from fanrig.model import Fan, Subsystem

log = logging.getLogger(__name__)

INVALID_INPUT_NOTICE = "Invalid input. Please enter a positive integer."


class Prompter(Protocol):
    """Request/response channel to whoever supplies the configuration."""

    async def ask(self, prompt: str) -> str:
        ...

    async def notify(self, message: str) -> None:
        ...


class ConsolePrompter:
    """Prompter reading answers from stdin.

    Reads on the calling thread: nothing else runs during configuration, and
    it keeps Ctrl-C raising KeyboardInterrupt out of the prompt.
    """

    def __init__(self, stream: TextIO = sys.stdout) -> None:
        self._stream = stream

    async def ask(self, prompt: str) -> str:
        return input(f"{prompt} ")

    async def notify(self, message: str) -> None:
        print(message, file=self._stream)


def _parse_positive_int(text: str) -> int | None:
    try:
        value = int(text.strip())
    except ValueError:
        return None
    return value if value > 0 else None


async def prompt_for_integer(prompter: Prompter, message: str) -> int:
    """Ask until the answer is a positive integer, notifying on every bad answer."""
    while True:
        answer = await prompter.ask(message)
        value = _parse_positive_int(answer)
        if value is not None:
            return value
        log.debug("Rejected answer %r to %r", answer, message)
        await prompter.notify(INVALID_INPUT_NOTICE)


class ConfigurationBuilder:
    """Collects subsystem count, fan counts and fan capacities from a Prompter."""

    def __init__(self, prompter: Prompter) -> None:
        self._prompter = prompter

    async def build(self) -> list[Subsystem]:
        count = await prompt_for_integer(self._prompter, "Enter the number of subsystems:")

        subsystems = []
        for i in range(1, count + 1):
            num_fans = await prompt_for_integer(
                self._prompter, f"Enter the number of fans in subsystem {i}:"
            )
            fans = []
            for j in range(1, num_fans + 1):
                capacity = await prompt_for_integer(
                    self._prompter, f"Enter the maximum RPM of fan {j} in subsystem {i}:"
                )
                fans.append(Fan(j, capacity))
            subsystems.append(Subsystem(i, fans))

        return subsystems


def load_topology(path: str | Path) -> list[Subsystem]:
    """Load a topology from YAML.

    Expected layout::

        subsystems:
          - fans: [3000]
          - fans: [1000, 2000]

    Subsystem and fan ids are assigned 1-based in file order.
    Raises ValueError for a malformed file, OSError if it cannot be read.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid topology file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("subsystems"), list):
        raise ValueError(f"Topology file {path} must contain a 'subsystems' list")

    subsystems = []
    for i, entry in enumerate(data["subsystems"], start=1):
        capacities = entry.get("fans", []) if isinstance(entry, dict) else None
        if not isinstance(capacities, list):
            raise ValueError(f"Subsystem {i} in {path}: 'fans' must be a list of capacities")
        fans = []
        for j, capacity in enumerate(capacities, start=1):
            if isinstance(capacity, bool) or not isinstance(capacity, (int, float)):
                raise ValueError(f"Subsystem {i}, fan {j}: capacity must be a number, got {capacity!r}")
            fans.append(Fan(j, capacity))
        subsystems.append(Subsystem(i, fans))

    return subsystems


def describe_topology(subsystems: list[Subsystem]) -> str:
    """One ``Subsystem N: K fans`` line per subsystem."""
    return "\n".join(f"Subsystem {s.id}: {len(s.fans)} fans" for s in subsystems)
