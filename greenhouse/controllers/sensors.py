"""Sensor controller - synthetic temperature/humidity feed"""

import logging
import random
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .. import config
from ..models.sensor_data import ChannelConfig, SensorReading
from ..services.environment import EnvironmentClassifier

logger = logging.getLogger(__name__)

# Values may drift this far outside [min, max] before being clamped
WALK_CLAMP_MARGIN = 2.0
# Pull toward the optimum applied on every step
MEAN_REVERSION = 0.1


def default_temperature_config() -> ChannelConfig:
    return ChannelConfig(
        minimum=config.TEMP_MIN,
        maximum=config.TEMP_MAX,
        optimum=config.TEMP_OPTIMUM,
        variation=config.TEMP_VARIATION,
    )


def default_humidity_config() -> ChannelConfig:
    return ChannelConfig(
        minimum=config.HUMIDITY_MIN,
        maximum=config.HUMIDITY_MAX,
        optimum=config.HUMIDITY_OPTIMUM,
        variation=config.HUMIDITY_VARIATION,
    )


class SensorSimulator:
    """Mean-reverting random walk over two channels.

    There is no real sensor I/O here; the reading drifts slowly around the
    configured optimum and never leaves [min - 2, max + 2].
    """

    def __init__(
        self,
        classifier: EnvironmentClassifier,
        temperature: Optional[ChannelConfig] = None,
        humidity: Optional[ChannelConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
    ):
        self.classifier = classifier
        self.temperature = temperature or classifier.temperature
        self.humidity = humidity or classifier.humidity
        self.clock = clock
        self.rng = rng or random.Random()

        self._reading = SensorReading(
            temperature=self.temperature.optimum,
            humidity=self.humidity.optimum,
            timestamp=self.clock(),
        )
        self._reading.status = self.classifier.classify(self._reading.temperature, self._reading.humidity)
        logger.info("Sensor simulator initialized")

    def _step(self, current: float, channel: ChannelConfig) -> float:
        drift = (channel.optimum - current) * MEAN_REVERSION
        noise = (self.rng.random() - 0.5) * 2 * channel.variation
        value = current + drift + noise
        value = max(channel.minimum - WALK_CLAMP_MARGIN, min(channel.maximum + WALK_CLAMP_MARGIN, value))
        return round(value, 1)

    def tick(self) -> SensorReading:
        """Advance the walk one step and return the new reading."""
        r = self._reading
        r.temperature = self._step(r.temperature, self.temperature)
        r.humidity = self._step(r.humidity, self.humidity)
        r.timestamp = self.clock()
        r.status = self.classifier.classify(r.temperature, r.humidity)
        logger.debug(f"Reading: {r.temperature}°C, {r.humidity}% ({r.status.value})")
        return r.copy()

    def reading(self) -> SensorReading:
        """Current reading without advancing."""
        return self._reading.copy()

    def configure(self, temperature: Optional[float] = None, humidity: Optional[float] = None) -> SensorReading:
        """Override the current values directly (manual control / tests)."""
        r = self._reading
        if temperature is not None:
            r.temperature = float(temperature)
        if humidity is not None:
            r.humidity = float(humidity)
        r.timestamp = self.clock()
        r.status = self.classifier.classify(r.temperature, r.humidity)
        logger.info(f"Sensor values set: {r.temperature}°C, {r.humidity}%")
        return r.copy()

    def history(self, count: int = 24) -> List[SensorReading]:
        """Generate `count` synthetic past readings at hourly spacing.

        Seeding/demo utility only; the live reading is not touched.
        """
        now = self.clock()
        temperature = self._reading.temperature
        humidity = self._reading.humidity
        points = []
        for i in range(count):
            temperature = self._step(temperature, self.temperature)
            humidity = self._step(humidity, self.humidity)
            points.append(SensorReading(
                temperature=temperature,
                humidity=humidity,
                timestamp=now - timedelta(hours=count - i),
                status=self.classifier.classify(temperature, humidity),
            ))
        return points
