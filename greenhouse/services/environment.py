"""Environment classifier - maps a (temperature, humidity) pair to a status"""

from .. import config
from ..models.sensor_data import ChannelConfig, SensorStatus


class EnvironmentClassifier:
    """Pure classifier over two comfort ranges.

    NORMAL when both channels sit inside [min, max]. WARNING when both sit
    inside their outer bands (min - margin .. max + margin). CRITICAL otherwise,
    so a single channel outside its outer band is enough for CRITICAL.
    """

    def __init__(
        self,
        temperature: ChannelConfig,
        humidity: ChannelConfig,
        temperature_margin: float = config.TEMP_OUTER_MARGIN,
        humidity_margin: float = config.HUMIDITY_OUTER_MARGIN,
    ):
        self.temperature = temperature
        self.humidity = humidity
        self.temperature_margin = temperature_margin
        self.humidity_margin = humidity_margin

    def classify(self, temperature: float, humidity: float) -> SensorStatus:
        if self.temperature.in_range(temperature) and self.humidity.in_range(humidity):
            return SensorStatus.NORMAL

        temp_in_band = (
            self.temperature.minimum - self.temperature_margin
            <= temperature
            <= self.temperature.maximum + self.temperature_margin
        )
        hum_in_band = (
            self.humidity.minimum - self.humidity_margin
            <= humidity
            <= self.humidity.maximum + self.humidity_margin
        )
        if temp_in_band and hum_in_band:
            return SensorStatus.WARNING
        return SensorStatus.CRITICAL
