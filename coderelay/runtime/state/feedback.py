"""Per-project acceptance statistics and the autonomy level derived from them.

Every instruction forwarded to a backend is appended to a per-backend log
inside the project.  Once the log grows past a threshold, the project's own
backend is asked (with its read-only planning agent) to count how many of
those instructions were coding requests and how many results the user
accepted.  The counts accumulate in ``USER_FEEDBACK_<BACKEND>.md``, which
feeds :meth:`FeedbackTracker.calculate_auto_level`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from ..util.result import Result

if TYPE_CHECKING:
    from ..services.backends import BackendAdapter

logger = logging.getLogger(__name__)

STATE_SUBDIR = ".coderelay"

_REQUESTS_RE = re.compile(r"coding_requests:\s*(\d+)", re.IGNORECASE)
_ACCEPTED_RE = re.compile(r"codes_accepted:\s*(\d+)", re.IGNORECASE)
_UPDATED_RE = re.compile(r"last_updated:\s*(\S+)", re.IGNORECASE)

# (upper bound on acceptance ratio, level)
_RATIO_LEVELS: tuple[tuple[float, int], ...] = ((0.1, 0), (0.2, 1), (0.4, 2), (0.8, 3))
# (request volume below which the level is capped, cap)
_VOLUME_CAPS: tuple[tuple[int, int], ...] = ((20, 0), (50, 1), (100, 2))
MAX_LEVEL = 4

EXTRACTION_PROMPT = """\
Below is a log of instructions a user sent to a coding agent working on this \
project, oldest first.

Count two things:
1. coding_requests -- instructions that asked for code to be written or changed.
2. codes_accepted -- coding requests whose result the user kept, i.e. the next \
instructions did not ask to redo, revert or fix that same change.

Do not modify any files. Reply with exactly these two lines and nothing else:
coding_requests: <integer>
codes_accepted: <integer>

Instruction log:
{log}
"""


@dataclass
class FeedbackCounter:
    coding_requests: int = 0
    codes_accepted: int = 0
    last_updated: str = ""

    def render(self) -> str:
        return (
            f"coding_requests: {self.coding_requests}\n"
            f"codes_accepted: {self.codes_accepted}\n"
            f"last_updated: {self.last_updated}\n"
        )

    @classmethod
    def parse(cls, text: str) -> FeedbackCounter:
        requests = _REQUESTS_RE.search(text)
        accepted = _ACCEPTED_RE.search(text)
        updated = _UPDATED_RE.search(text)
        return cls(
            coding_requests=int(requests.group(1)) if requests else 0,
            codes_accepted=int(accepted.group(1)) if accepted else 0,
            last_updated=updated.group(1) if updated else "",
        )


@dataclass(frozen=True)
class AutoLevel:
    level: int
    percentage: int
    requests: int
    accepted: int

    @property
    def label(self) -> str:
        return f"L{self.level}"

    def describe(self) -> str:
        return f"{self.label} ({self.percentage}% of {self.requests} requests accepted)"


def ratio_level(ratio: float) -> int:
    for upper, level in _RATIO_LEVELS:
        if ratio <= upper:
            return level
    return MAX_LEVEL


def volume_cap(requests: int) -> int:
    for below, cap in _VOLUME_CAPS:
        if requests < below:
            return cap
    return MAX_LEVEL


def auto_level(counter: FeedbackCounter) -> AutoLevel:
    requests = counter.coding_requests or 1
    ratio = counter.codes_accepted / requests
    level = min(ratio_level(ratio), volume_cap(counter.coding_requests))
    return AutoLevel(
        level=level,
        percentage=round(ratio * 100),
        requests=counter.coding_requests,
        accepted=counter.codes_accepted,
    )


class FeedbackTracker:
    """Instruction log + feedback counter for every project/backend pair.

    One summary runs at a time per project/backend; instructions logged
    while it runs stay in the log for the next one.  Counter writes are
    plain read-modify-write cycles and assume a single process.
    """

    def __init__(
        self,
        adapters: Mapping[str, BackendAdapter],
        *,
        threshold: int = 500,
    ) -> None:
        self._adapters = adapters
        self._threshold = threshold
        self._summary_locks: dict[tuple[str, str], asyncio.Lock] = {}

    # -- paths -------------------------------------------------------------

    @staticmethod
    def state_dir(project_dir: str) -> Path:
        return Path(project_dir) / STATE_SUBDIR

    def feedback_path(self, project_dir: str, backend: str) -> Path:
        return self.state_dir(project_dir) / f"USER_FEEDBACK_{backend.upper()}.md"

    def instruction_log_path(self, project_dir: str, backend: str) -> Path:
        return self.state_dir(project_dir) / f"instructions_{backend}.log"

    # -- counter -----------------------------------------------------------

    def load_counter(self, project_dir: str, backend: str) -> FeedbackCounter:
        path = self.feedback_path(project_dir, backend)
        if not path.exists():
            return FeedbackCounter()
        try:
            return FeedbackCounter.parse(path.read_text())
        except OSError as exc:
            logger.warning("[feedback.load] %s unreadable: %s", path, exc, exc_info=True)
            return FeedbackCounter()

    def save_counter(self, project_dir: str, backend: str, counter: FeedbackCounter) -> None:
        path = self.feedback_path(project_dir, backend)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(counter.render())

    def calculate_auto_level(self, project_dir: str, backend: str) -> AutoLevel:
        return auto_level(self.load_counter(project_dir, backend))

    # -- instruction log ---------------------------------------------------

    async def record_instruction(self, project_dir: str, backend: str, text: str) -> bool:
        """Append *text* to the log; summarise when it passes the threshold.

        Returns ``True`` when a summary was folded into the counter.
        """
        if not text.strip():
            return False
        path = self.instruction_log_path(project_dir, backend)
        stamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        line = " ".join(text.split())
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                fh.write(f"[{stamp}] {line}\n")
            count = len(path.read_text(encoding="utf-8").splitlines())
        except OSError as exc:
            logger.warning("[feedback.record] cannot write %s: %s", path, exc, exc_info=True)
            return False
        if count <= self._threshold:
            return False

        lock = self._summary_locks.setdefault((project_dir, backend), asyncio.Lock())
        if lock.locked():
            logger.debug("[feedback.record] %s/%s: summary already running", project_dir, backend)
            return False
        async with lock:
            if self._line_count(path) <= self._threshold:
                return False
            result = await self.summarize(project_dir, backend)
        if not result:
            logger.warning("[feedback.summarize] %s/%s: %s", project_dir, backend, result.message)
        return bool(result)

    @staticmethod
    def _line_count(path: Path) -> int:
        try:
            return len(path.read_text(encoding="utf-8").splitlines())
        except OSError:
            return 0

    async def summarize(self, project_dir: str, backend: str) -> Result:
        from ..services.backends import BackendRequest

        adapter = self._adapters.get(backend)
        if adapter is None:
            return Result.fail(f"no adapter for backend {backend!r}")
        path = self.instruction_log_path(project_dir, backend)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            return Result.fail(f"cannot read instruction log: {exc}")
        recent = "\n".join(lines[-self._threshold:])

        logger.info("[feedback.summarize] %s/%s: %d lines", project_dir, backend, len(lines))
        reply = await adapter.invoke(BackendRequest(
            message=EXTRACTION_PROMPT.format(log=recent),
            project_dir=project_dir,
            agent=adapter.spec.plan_agent,
        ))
        if not reply.ok:
            return Result.fail(f"backend error: {reply.error}")
        requests = _REQUESTS_RE.search(reply.text)
        accepted = _ACCEPTED_RE.search(reply.text)
        if not (requests and accepted):
            return Result.fail("could not find counters in backend reply")

        counter = self.load_counter(project_dir, backend)
        counter.coding_requests += int(requests.group(1))
        counter.codes_accepted += int(accepted.group(1))
        counter.last_updated = datetime.now(UTC).isoformat()
        try:
            self.save_counter(project_dir, backend, counter)
            # Keep lines appended while the backend was summarising.
            current = path.read_text(encoding="utf-8").splitlines()
            remaining = current[len(lines):]
            path.write_text("".join(f"{line}\n" for line in remaining), encoding="utf-8")
        except OSError as exc:
            return Result.fail(f"cannot persist feedback: {exc}")
        logger.info(
            "[feedback.summarize] %s/%s now %d requests, %d accepted",
            project_dir, backend, counter.coding_requests, counter.codes_accepted,
        )
        return Result.ok(value=counter)
