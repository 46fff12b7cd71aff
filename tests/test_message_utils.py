from unittest.mock import AsyncMock, MagicMock

import pytest

from utils.message_utils import (
    format_detailed_duration,
    format_duration,
    send_message,
    split_message,
)


@pytest.mark.parametrize("ms, expected", [
    (0, "0s"),
    (999, "0s"),
    (-5000, "0s"),
    (65_000, "1m 5s"),
    (3_600_000, "1h"),
    (95_415_000, "1d 2h 30m 15s"),
])
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected


@pytest.mark.parametrize("ms, expected", [
    (0, "0 seconds"),
    (1000, "1 second"),
    (120_000, "2 minutes"),
    (3_660_000, "1 hour and 1 minute"),
    (7_501_000, "2 hours, 5 minutes, and 1 second"),
])
def test_format_detailed_duration(ms, expected):
    assert format_detailed_duration(ms) == expected


def test_split_message_prefers_line_breaks():
    text = "\n".join(["x" * 15] * 4)

    chunks = split_message(text, max_length=40)

    two_lines = "x" * 15 + "\n" + "x" * 15
    assert chunks == [two_lines, two_lines]


def test_split_message_without_newlines():
    chunks = split_message("a" * 45, max_length=20)
    assert chunks == ["a" * 20, "a" * 20, "a" * 5]


@pytest.mark.asyncio
async def test_send_message_reports_failure():
    channel = MagicMock()
    channel.send = AsyncMock(side_effect=[None, RuntimeError("forbidden")])

    assert await send_message(channel, "a" * 2500) is False
    assert channel.send.call_count == 2
