import re

from aldrin.core.errors import MalformedRange, RangeNotSatisfiable
from aldrin.domain.models import ByteRange, FullRange

# bytes=<start>-<end>, end optional. Only the first of several comma-separated
# ranges is honoured.
RANGE_PATTERN = re.compile(r"^\s*bytes\s*=\s*(\d+)\s*-\s*(\d*)\s*$", re.IGNORECASE)


def parse_range(header: str | None, total_size: int) -> FullRange | ByteRange:
    """Interpret a ``Range`` header against a body of ``total_size`` bytes.

    No header gives a FullRange (200). A satisfiable single range gives a
    ByteRange (206). Anything else raises RangeNotSatisfiable, answered with 416.
    """
    if header is None or not header.strip():
        return FullRange(total_size=total_size)

    first = header.split(",", 1)[0]
    match = RANGE_PATTERN.match(first)
    if not match:
        raise MalformedRange(total_size)

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else total_size - 1

    if start > end or end >= total_size:
        raise RangeNotSatisfiable(total_size)

    return ByteRange(start=start, end=end, total_size=total_size)
