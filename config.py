"""Application configuration driven by environment variables.

All settings have sensible defaults for local development.
Algorithm constants (learning rate, score caps, bonuses) live next to the
code that uses them; only operational knobs are configurable here.
"""

import os

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_LEVEL: str = os.getenv("ROUTINE_LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Plan generation
# ---------------------------------------------------------------------------

# How many of the user's most recent feedback events the scorer sees.
RECENT_FEEDBACK_LIMIT: int = int(os.getenv("ROUTINE_RECENT_FEEDBACK_LIMIT", "50"))

# Plan requests slower than this are logged at WARNING.
PLAN_WARN_THRESHOLD_MS: int = int(os.getenv("ROUTINE_PLAN_WARN_THRESHOLD_MS", "200"))

# ---------------------------------------------------------------------------
# Feedback submission
# ---------------------------------------------------------------------------

# Read-modify-write attempts before a version conflict is reported to the
# caller.  Each attempt re-reads the preference vector.
FEEDBACK_COMMIT_ATTEMPTS: int = int(os.getenv("ROUTINE_FEEDBACK_COMMIT_ATTEMPTS", "3"))
