"""Type aliases using modern PEP 695 syntax."""

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime

from mass_notify.types.models import Endpoint

# Opaque data attached to every message of a request
type Payload = Mapping[str, object]

# Ordered group of endpoints sent in a single gateway call
type Batch = Sequence[Endpoint]

# Identifier returned by the scheduler for a persisted record
type ScheduledId = str

# Injectable time source, always returns an aware UTC datetime
type Clock = Callable[[], datetime]
