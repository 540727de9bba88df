"""
Promotion window arithmetic.

Pure functions: every input (including "now" and the caller's timezone
offset) is passed explicitly so the results are deterministic.

Timezone offsets follow the browser convention ``UTC = local + offset``
(``Date.getTimezoneOffset()``), so a caller in UTC+2 sends ``-120``.
"""

import math
import re
from datetime import UTC, datetime, timedelta

from app.models.domain.listing_domain import PromotionMode, PromotionWindow
from app.services.errors import ValidationError

DEFAULT_NIGHT_START_HOUR_UTC = 23
DEFAULT_EXPIRY_GRACE_DAYS = 30

TIME_SLOT_PATTERN = re.compile(r"^(\d{2}):(\d{2})-(\d{2}):(\d{2})$")


def _as_utc(moment: datetime) -> datetime:
    # Naive datetimes are treated as UTC, matching the database session timezone
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def _utc_midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_time_slot(time_slot: str) -> tuple[int, int]:
    """
    Return (hour, minute) of the start of an ``HH:MM-HH:MM`` slot.

    Raises:
        ValidationError: if the slot is malformed or out of range
    """
    match = TIME_SLOT_PATTERN.match(time_slot or "")
    if not match:
        raise ValidationError(f"Invalid timeSlot '{time_slot}': expected format HH:MM-HH:MM")

    start_hour, start_minute, end_hour, end_minute = (int(part) for part in match.groups())
    if start_hour > 23 or end_hour > 23 or start_minute > 59 or end_minute > 59:
        raise ValidationError(f"Invalid timeSlot '{time_slot}': time out of range")

    return start_hour, start_minute


def slot_target(day_midnight: datetime, total_utc_minutes: int) -> datetime:
    """
    UTC instant of a slot start given as minutes past ``day_midnight``.

    Hours are floored and the minute remainder keeps the sign of the total.
    Totals outside one day roll into the previous/next UTC day.
    """
    hours = total_utc_minutes // 60
    minutes = int(math.fmod(total_utc_minutes, 60))
    return day_midnight + timedelta(hours=hours, minutes=minutes)


def calculate_promotion_window(
    promotion_type: PromotionMode | str,
    duration_hours: int,
    time_slot: str | None,
    timezone_offset_minutes: int,
    now: datetime,
    *,
    night_start_hour: int = DEFAULT_NIGHT_START_HOUR_UTC,
) -> PromotionWindow:
    """
    Compute the absolute UTC start and end of a promotion.

    Day mode targets the caller's local slot start converted to UTC for the
    current UTC day; when that moment has already passed the promotion
    starts immediately. Night mode always targets the next 23:00 UTC
    boundary strictly after ``now`` and never starts immediately.

    Args:
        promotion_type: ``day`` or ``night``
        duration_hours: total promoted coverage, must be positive
        time_slot: ``HH:MM-HH:MM`` local window, required for day mode
        timezone_offset_minutes: caller offset, ``UTC = local + offset``
        now: current instant
        night_start_hour: UTC hour night promotions start at

    Returns:
        PromotionWindow with ``start < end``
    """
    if duration_hours <= 0:
        raise ValidationError("durationHours must be a positive number of hours")

    mode = PromotionMode(promotion_type)
    now = _as_utc(now)
    today_midnight = _utc_midnight(now)

    if mode is PromotionMode.DAY:
        if not time_slot:
            raise ValidationError("timeSlot is required for day promotions")

        local_hour, local_minute = parse_time_slot(time_slot)
        total_utc_minutes = local_hour * 60 + local_minute + timezone_offset_minutes

        target = slot_target(today_midnight, total_utc_minutes)
        start = now if target <= now else target
    else:
        anchor = today_midnight + timedelta(hours=night_start_hour)
        if anchor <= now:
            anchor += timedelta(days=1)
        start = anchor

    return PromotionWindow(start=start, end=start + timedelta(hours=duration_hours))


def merge_expiry(
    current_expires_at: datetime | None,
    promo_end: datetime,
    *,
    grace_days: int = DEFAULT_EXPIRY_GRACE_DAYS,
) -> datetime:
    """
    New listing expiry after a promotion purchase.

    The expiry is never shortened: the later of the current expiry and the
    promotion end, plus ``grace_days`` UTC calendar days. A missing current
    expiry is ignored.
    """
    promo_end = _as_utc(promo_end)
    if current_expires_at is None:
        base = promo_end
    else:
        base = max(_as_utc(current_expires_at), promo_end)
    return base + timedelta(days=grace_days)


def describe_package(promotion_type: PromotionMode | str, duration_hours: int, time_slot: str | None) -> str:
    """Human-readable ledger description, e.g. 'Promozione: Modalità Giorno per 1 giorni (Fascia: 14:00-15:00)'."""
    mode = PromotionMode(promotion_type)
    mode_label = "Modalità Giorno" if mode is PromotionMode.DAY else "Modalità Notte"

    days = duration_hours / 24
    days_label = str(int(days)) if days.is_integer() else f"{days:g}"

    description = f"Promozione: {mode_label} per {days_label} giorni"
    if mode is PromotionMode.DAY and time_slot:
        description += f" (Fascia: {time_slot})"
    return description
