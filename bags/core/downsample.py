"""Shape-preserving reduction of price series for fixed-width terminal charts."""

from typing import List, Sequence


def downsample(data: Sequence[float], width: int) -> List[float]:
    """Reduce a price series to at most ``width`` samples.

    The input is split into ``width`` contiguous buckets of fractional size
    ``len(data) / width``. The first bucket emits its last value; every later
    bucket emits its minimum or maximum, whichever lies farther from the
    previously emitted sample, so alternating peaks and valleys survive the
    reduction instead of being averaged away.

    Args:
        data: Price samples in ascending time order
        width: Number of output columns

    Returns:
        ``min(len(data), width)`` samples; the input unchanged when it
        already fits
    """
    if width <= 0 or not data:
        return []
    if len(data) <= width:
        return list(data)

    result: List[float] = []
    bucket_size = len(data) / width

    for i in range(width):
        start = int(i * bucket_size)
        end = min(int((i + 1) * bucket_size), len(data))

        if start >= end:
            # Rounding left this bucket empty
            if result:
                result.append(result[-1])
            continue

        bucket = data[start:end]
        low = min(bucket)
        high = max(bucket)

        if not result:
            result.append(bucket[-1])
            continue

        prev = result[-1]
        if abs(low - prev) > abs(high - prev):
            result.append(low)
        else:
            result.append(high)

    return result


def scale_to_rows(samples: Sequence[float], resolution: float) -> List[int]:
    """Map samples onto integer bar heights in ``[0, resolution]``.

    A flat series has no range to divide by and is drawn as a constant line at
    mid height.

    Args:
        samples: Downsampled prices
        resolution: Height of the tallest bar

    Returns:
        One bar height per sample
    """
    if not samples:
        return []

    low = min(samples)
    high = max(samples)
    spread = high - low

    if spread == 0:
        return [int(resolution / 2)] * len(samples)

    return [int((value - low) / spread * resolution) for value in samples]
