# apptbook/core/business.py
from __future__ import annotations

# Minute-of-day bounds of the default booking window (09:00-18:00)
BUSINESS_START_MIN = 9 * 60
BUSINESS_END_MIN = 18 * 60

# Candidate start times are proposed on this grid
SLOT_STEP_MIN = 30

DEFAULT_DURATION_MIN = 60
MAX_SUGGESTIONS = 5