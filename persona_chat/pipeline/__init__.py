"""Turn-taking pipeline.

Decides after every message whether an AI persona answers, which one, and
runs the generation:

  mentions   — "@name" / full-name detection in the last message
  moderator  — model-backed "who speaks next" with tolerant JSON parsing
  generator  — persona reply with one fallback-model retry + sanitization
  guard      — process-wide single-flight slot, doubling as typing indicator
  scheduler  — TurnScheduler.try_advance(): mention → moderator → random
  poller     — fixed-interval driver for auto-mode sessions

Failure policy: a moderator failure falls back to a random pick; a
generation failure skips the turn and keeps auto mode on; the guard is
released on every exit path.
"""

from .generator import ReplyGenerator, resolve_models  # noqa: F401
from .guard import GenerationGuard, GuardBusy, TypingSlot  # noqa: F401
from .mentions import find_mentioned, is_mentioned  # noqa: F401
from .moderator import ModeratorSelector, parse_next_speaker  # noqa: F401
from .poller import AutoContinuationPoller  # noqa: F401
from .scheduler import TurnOutcome, TurnScheduler  # noqa: F401
