import time
import logging
import threading
from types import MappingProxyType
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from orbitai.errors import ParameterLookupError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterSnapshot:
    """
    A consistent point-in-time copy of parameter values.

    :param timestamp: Capture time in milliseconds since the epoch.
    :param values: Read-only mapping of parameter name to value.
    """
    timestamp: int
    values: Mapping[str, float]

    def __getitem__(self, name: str) -> float:
        return self.values[name]


def current_millis() -> int:
    return int(time.time() * 1000)


class ParameterStore:
    """
    Latest value of every declared supervisor parameter.

    Each declared name owns a fixed slot in a list; single writes, group
    writes and snapshots all go through the same lock, so a snapshot never
    mixes values from before and after a group update.
    """

    def __init__(self, names: Iterable[str], default_value: float = 42.0, clock=current_millis) -> None:
        """
        :param names: The declared parameter names, in logging order.
        :param default_value: Value reported for names never written.
        :param clock: Callable returning the current time in epoch milliseconds.
        :raises ValueError: If a name is empty or declared twice.
        """
        self.names: List[str] = list(names)
        self.default_value = float(default_value)
        self._clock = clock
        self._slots: Dict[str, int] = {}
        for index, name in enumerate(self.names):
            if not name:
                raise ValueError("Parameter names must be non-empty strings.")
            if name in self._slots:
                raise ValueError(f"Parameter '{name}' is declared more than once.")
            self._slots[name] = index
        self._values: List[float] = [self.default_value] * len(self.names)
        self._lock = threading.Lock()

    def _slot_for(self, name: str) -> int:
        try:
            return self._slots[name]
        except KeyError:
            raise ParameterLookupError(f"Unknown parameter '{name}'") from None

    def __contains__(self, name: str) -> bool:
        return name in self._slots

    def set(self, name: str, value: float) -> bool:
        """
        Overwrites the current value of a parameter.

        :param name: The parameter name.
        :param value: The new value.
        :return: True if the value was stored, False if the name is unknown.
        """
        try:
            slot = self._slot_for(name)
        except ParameterLookupError:
            log.warning(f"Trying to set value {value} for unknown parameter {name}")
            return False
        with self._lock:
            self._values[slot] = float(value)
        return True

    def update(self, values: Mapping[str, float]) -> int:
        """
        Writes several correlated values at once.

        :param values: Mapping of parameter name to new value. Unknown names are skipped.
        :return: The number of values stored.
        """
        slots = {}
        for name, value in values.items():
            try:
                slots[self._slot_for(name)] = float(value)
            except ParameterLookupError:
                log.warning(f"Trying to set value {value} for unknown parameter {name}")
        with self._lock:
            for slot, value in slots.items():
                self._values[slot] = value
        return len(slots)

    def get(self, name: str) -> float:
        """Returns the latest value of a parameter, or the default value."""
        try:
            slot = self._slot_for(name)
        except ParameterLookupError:
            log.warning(f"Trying to get value of unknown parameter {name}")
            return self.default_value
        with self._lock:
            return self._values[slot]

    def snapshot(self, names: Optional[Iterable[str]] = None) -> ParameterSnapshot:
        """
        Captures the requested parameters atomically.

        :param names: Names to include, all declared names when None.
        :return: The stamped snapshot. Unknown names map to the default value.
        """
        requested = self.names if names is None else list(names)
        slots = []
        for name in requested:
            try:
                slots.append(self._slot_for(name))
            except ParameterLookupError:
                log.warning(f"Trying to get value of unknown parameter {name}")
                slots.append(None)

        with self._lock:
            timestamp = self._clock()
            values = [self.default_value if slot is None else self._values[slot] for slot in slots]

        return ParameterSnapshot(timestamp=timestamp, values=MappingProxyType(dict(zip(requested, values))))


def get_hd_camera_label(pd6: float, threshold: float = 1.0472) -> int:
    """
    Returns the label (ON/OFF) of the HD camera for a PD6 elevation.

    :param pd6: Elevation seen by photodiode 6 (on the -Z face), in radians.
    :param threshold: Elevation above which the camera should be OFF.
    :return: 1 = ON, 0 = OFF
    """
    if pd6 > threshold:
        return 0
    return 1
