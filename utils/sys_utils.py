"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

System utilities for payload encoding and time measurement
"""

import base64
import time


def get_monotonic_time() -> float:
    """
    Current monotonic clock reading in seconds.
    """
    return time.perf_counter()


def get_elapsed_ms(start: float) -> int:
    """
    Whole milliseconds elapsed since a get_monotonic_time() reading.
    """
    return int(round((time.perf_counter() - start) * 1000))


def encode_base64(data: bytes) -> str:
    """
    Encode raw image bytes as the base64 text the detector expects.
    """
    return base64.b64encode(data).decode("ascii")


def get_file_size_text(bytes_value: int) -> str:
    """
    Converts a size in bytes into a more readable unit
    (Bytes, KB, MB, GB, TB, PB).
    """

    units = ["Bytes", "KB", "MB", "GB", "TB", "PB"]
    size = bytes_value
    i = 0

    while size > 1024 and i < len(units) - 1:
        size /= 1024
        i += 1

    return f"{size:.2f} {units[i]}"
