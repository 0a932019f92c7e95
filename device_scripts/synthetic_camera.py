"""Simulated camera producing noisy gradient frames."""

from __future__ import annotations

import numpy as np


class SyntheticCamera:
    def __init__(self, sensor_width: int = 512, sensor_height: int = 256, seed: int = 0) -> None:
        self.sensor_width = int(sensor_width)
        self.sensor_height = int(sensor_height)
        self.left = 0
        self.top = 0
        self.width = self.sensor_width
        self.height = self.sensor_height
        self.binning = 1
        self.bit_depth = 12
        self._exposure_ms = 10.0
        self._rng = np.random.default_rng(seed)
        self._triggered = False
        self.frames_read = 0

    @property
    def exposure_ms(self) -> float:
        return self._exposure_ms

    @exposure_ms.setter
    def exposure_ms(self, value: float) -> None:
        if value <= 0:
            raise ValueError(f"exposure must be positive, got {value}")
        self._exposure_ms = float(value)

    def trigger(self) -> None:
        self._triggered = True

    def read(self) -> np.ndarray:
        if not self._triggered:
            raise RuntimeError("read() called before trigger()")
        self._triggered = False
        rows = self.height // self.binning
        cols = self.width // self.binning
        ramp = np.add.outer(np.arange(rows), np.arange(cols)) + self.top + self.left
        signal = ramp * self._exposure_ms / 10.0
        noise = self._rng.normal(0.0, 4.0, size=(rows, cols))
        frame = np.clip(signal + noise, 0, 2**self.bit_depth - 1).astype(np.uint16)
        self.frames_read += 1
        return frame
