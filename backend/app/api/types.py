from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import Path, Query

from ..models import VenueStatus

MAX_DURATION_MINUTES = 31 * 24 * 60

StartQuery = Annotated[
    datetime,
    Query(description="ISO-8601 start; a value without offset is read in the venue timezone"),
]
DurationQuery = Annotated[
    int,
    Query(alias="durationMinutes", gt=0, le=MAX_DURATION_MINUTES),
]
SuggestQuery = Annotated[bool, Query(description="Propose nearby free start times when unavailable")]
VenueStatusQuery = Annotated[VenueStatus | None, Query(alias="status")]
ResourceId = Annotated[str, Path(min_length=1, max_length=64)]
