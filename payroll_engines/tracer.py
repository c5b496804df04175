"""
payroll_engines.tracer -- ``@traced_engine`` emitting PAYROLL_ENGINE_TRACE.

Every traced calculator call logs one record with the engine name and
version, a fingerprint of the chosen arguments and the call duration.  The
fingerprint lets two traces be compared for identical inputs without
logging salaries.

Arguments are resolved against the wrapped signature, so a field passed
positionally fingerprints the same as when passed by keyword.  Absent
arguments fingerprint as their ``repr`` (``None``).
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

# Own namespace so engines never import the kernel logging setup.
_logger = logging.getLogger("payroll_kernel.engines.tracer")


def compute_input_fingerprint(fields: tuple[str, ...], arguments: dict[str, Any]) -> str:
    """16-char SHA-256 prefix over ``field=repr(value)`` for each field, in order."""
    canonical = "|".join(f"{name}={arguments.get(name)!r}" for name in fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            arguments = signature.bind_partial(*args, **kwargs).arguments
            t0 = time.monotonic()
            result = func(*args, **kwargs)
            _logger.info(
                "PAYROLL_ENGINE_TRACE",
                extra={
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": compute_input_fingerprint(fingerprint_fields, arguments),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

        return wrapper

    return decorator
