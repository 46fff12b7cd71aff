"""
Message Utilities
Duration formatting and message splitting for Discord replies
"""

import logging

logger = logging.getLogger("onoff-tracker")

MAX_MESSAGE_LENGTH = 2000  # Discord's message limit


def _duration_parts(ms: int):
    seconds = max(0, int(ms)) // 1000
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    return days, hours, minutes, seconds


def format_duration(ms: int) -> str:
    """
    Format milliseconds compactly, e.g. "1d 2h 30m 15s".

    Zero-valued units are omitted; a duration under one second is "0s".
    """
    days, hours, minutes, seconds = _duration_parts(ms)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)


def format_detailed_duration(ms: int) -> str:
    """Format milliseconds in words, e.g. "2 hours, 5 minutes, and 1 second" """
    units = zip(_duration_parts(ms), ("day", "hour", "minute", "second"))
    parts = [f"{value} {name}{'s' if value != 1 else ''}" for value, name in units if value]
    if not parts:
        return "0 seconds"
    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2:
        return " and ".join(parts)
    return ", ".join(parts[:-1]) + ", and " + parts[-1]


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list:
    """
    Split a long message into multiple chunks that fit within Discord's limit.

    Args:
        text: The text to split
        max_length: Maximum length of each chunk (default: 2000 for Discord)

    Returns:
        List of message chunks
    """
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        # Prefer breaking between lines
        split_pos = remaining.rfind('\n', 0, max_length)
        if split_pos <= 0:
            split_pos = max_length

        chunks.append(remaining[:split_pos])
        remaining = remaining[split_pos:].lstrip('\n')

    return chunks


async def send_message(channel, text: str) -> bool:
    """
    Send a possibly long message to a Discord channel, splitting if necessary.

    Returns:
        True if all chunks sent successfully, False otherwise
    """
    for i, chunk in enumerate(split_message(text)):
        try:
            await channel.send(chunk)
        except Exception as e:
            logger.error(f"Error sending message chunk {i}: {e}")
            return False
    return True
