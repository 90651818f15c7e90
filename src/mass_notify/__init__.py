"""mass-notify - Fan one push notification out to many registered devices.

This package resolves an audience of push endpoints, sends the notification
to a push gateway in fixed-size batches, aggregates per-recipient outcomes
and records one stats row per run. Requests can also be scheduled for an
external time trigger.
"""

from mass_notify.__main__ import main

__all__ = ["main"]
