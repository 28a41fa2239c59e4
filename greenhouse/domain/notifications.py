"""Notification rules: validation, priority and message factories"""

from typing import Dict, List

from ..storage.models import (
    NOTIFICATION_TITLE_MAX,
    IrrigationCalendar,
    Notification,
    NotificationPriority,
    NotificationType,
)

# Reference points used by the environment alert factories
TEMPERATURE_REFERENCE = 21.0
TEMPERATURE_URGENT_DEVIATION = 4.0
HUMIDITY_URGENT_LOW = 70.0
HUMIDITY_URGENT_HIGH = 85.0


def validate_notification(data: dict) -> List[str]:
    errors = []
    title = data.get('title')
    if not title or not str(title).strip():
        errors.append("Title is required")
    elif len(title) > NOTIFICATION_TITLE_MAX:
        errors.append(f"Title cannot exceed {NOTIFICATION_TITLE_MAX} characters")

    message = data.get('message')
    if not message or not str(message).strip():
        errors.append("Message is required")

    if data.get('type') not in {t.value for t in NotificationType}:
        errors.append("Invalid notification type")

    priority = data.get('priority', NotificationPriority.MEDIUM.value)
    if priority not in {p.value for p in NotificationPriority}:
        errors.append("Invalid notification priority")
    return errors


def is_out_of_range(value: float, minimum: float, maximum: float) -> bool:
    return value < minimum or value > maximum


def priority_for_deviation(value: float, minimum: float, maximum: float) -> NotificationPriority:
    """Priority from how far (in percent) the value sits outside [minimum, maximum]."""
    deviation = 0.0
    if value < minimum:
        deviation = (minimum - value) / minimum * 100
    elif value > maximum:
        deviation = (value - maximum) / maximum * 100

    if deviation == 0:
        return NotificationPriority.LOW
    if deviation < 5:
        return NotificationPriority.MEDIUM
    if deviation < 15:
        return NotificationPriority.HIGH
    return NotificationPriority.URGENT


# =============================================================================
# FACTORIES
# =============================================================================

def watering_reminder(calendar: IrrigationCalendar, greenhouse_name: str = "greenhouse") -> Notification:
    return Notification(
        type=NotificationType.IRRIGATION,
        title=f"Watering time - {greenhouse_name}",
        message=(f"Time to water {greenhouse_name}. Scheduled duration: "
                 f"{calendar.duration_minutes} minutes at {calendar.watering_time}."),
        priority=NotificationPriority.HIGH,
    )


def watering_completed(duration_minutes: int, greenhouse_name: str = "greenhouse") -> Notification:
    return Notification(
        type=NotificationType.IRRIGATION,
        title=f"Watering completed - {greenhouse_name}",
        message=f"Watering of {duration_minutes} minutes finished successfully.",
        priority=NotificationPriority.LOW,
    )


def temperature_alert(temperature: float, minimum: float, maximum: float,
                      greenhouse_name: str = "greenhouse") -> Notification:
    urgent = abs(temperature - TEMPERATURE_REFERENCE) > TEMPERATURE_URGENT_DEVIATION
    return Notification(
        type=NotificationType.ALERT,
        title=f"Temperature alert - {greenhouse_name}",
        message=f"Temperature {temperature}°C outside the optimal range ({minimum}-{maximum}°C)",
        priority=NotificationPriority.URGENT if urgent else NotificationPriority.HIGH,
    )


def humidity_alert(humidity: float, minimum: float, maximum: float,
                   greenhouse_name: str = "greenhouse") -> Notification:
    urgent = humidity < HUMIDITY_URGENT_LOW or humidity > HUMIDITY_URGENT_HIGH
    return Notification(
        type=NotificationType.ALERT,
        title=f"Humidity alert - {greenhouse_name}",
        message=f"Humidity {humidity}% outside the optimal range ({minimum}-{maximum}%)",
        priority=NotificationPriority.URGENT if urgent else NotificationPriority.HIGH,
    )


# =============================================================================
# COLLECTIONS
# =============================================================================

def group_by_priority(notifications: List[Notification]) -> Dict[str, List[Notification]]:
    groups = {p.value: [] for p in NotificationPriority}
    for n in notifications:
        groups[n.priority.value].append(n)
    return groups


def unread(notifications: List[Notification]) -> List[Notification]:
    return [n for n in notifications if not n.read]


def count_by_type(notifications: List[Notification]) -> Dict[str, int]:
    counts = {t.value: 0 for t in NotificationType}
    for n in notifications:
        counts[n.type.value] += 1
    return counts
