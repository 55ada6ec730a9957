from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from typesetgo.core.session import FinishedAttempt, SessionListener, SessionState, TestSession
from typesetgo.core.settings import Mode, Settings

logger = logging.getLogger(__name__)

DEFAULT_PLANS_DIR = Path(__file__).resolve().parent.parent / "data" / "plans"


@dataclass(frozen=True)
class PlanItem:
    id: str
    mode: Mode
    settings: Mapping[str, Any] = field(default_factory=dict)
    title: str = ""
    subtitle: str = ""

    def apply_to(self, base: Settings) -> Settings:
        """Layer this step's settings (and its mode) over ``base``."""
        return base.merged({**dict(self.settings), "mode": self.mode})


@dataclass(frozen=True)
class Plan:
    key: str
    title: str
    items: Tuple[PlanItem, ...]

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class PlanStepResult:
    wpm: int
    accuracy: float
    raw: int
    time_ms: int
    date: float
    mode: str
    title: str = ""
    subtitle: str = ""


@dataclass(frozen=True)
class PlanSummary:
    total_steps: int
    completed: int
    average_wpm: float
    average_accuracy: float
    total_time_ms: int


class PlanOrchestrator(SessionListener):
    """Runs the steps of a plan back to back on one :class:`TestSession`.

    Each step is first announced (``is_splash``), then started, then its
    finished attempt is recorded once under the step id.  Moving past the
    last step switches to the aggregate results view.
    """

    def __init__(self, session: TestSession) -> None:
        self._session = session
        self._plan: Optional[Plan] = None
        self._index = 0
        self._active = False
        self._splash = False
        self._show_results = False
        self._results: Dict[str, PlanStepResult] = {}
        session.add_listener(self)

    @property
    def plan(self) -> Optional[Plan]:
        return self._plan

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_splash(self) -> bool:
        return self._splash

    @property
    def show_results(self) -> bool:
        return self._show_results

    @property
    def results(self) -> Dict[str, PlanStepResult]:
        return dict(self._results)

    @property
    def current_item(self) -> Optional[PlanItem]:
        if self._plan is None or not 0 <= self._index < len(self._plan.items):
            return None
        return self._plan.items[self._index]

    def start(self, plan: Plan) -> bool:
        if not plan.items:
            return False
        self._plan = plan
        self._index = 0
        self._active = True
        self._splash = True
        self._show_results = False
        self._results = {}
        logger.info("Plan %r started with %d steps", plan.title, len(plan.items))
        return True

    def start_step(self) -> bool:
        """Leave the splash and generate the current step's test."""
        item = self.current_item
        if not self._active or item is None:
            return False
        self._splash = False
        self._session.apply_settings(item.apply_to(self._session.settings), regenerate=False)
        return self._session.generate_test()

    def on_finished(self, attempt: FinishedAttempt) -> None:
        if not self._active or self._splash:
            return
        item = self.current_item
        if item is None:
            return
        candidate = PlanStepResult(
            wpm=round(attempt.wpm),
            accuracy=attempt.accuracy,
            raw=round(attempt.wpm),
            time_ms=attempt.elapsed_ms,
            date=time.time(),
            mode=item.mode.value,
            title=item.title,
            subtitle=item.subtitle,
        )
        if item.id not in self._results:
            self._results[item.id] = candidate

    def next(self) -> bool:
        """Announce the next step. Returns False (and shows results) past the last one."""
        if not self._active or self._plan is None:
            return False
        if self._index + 1 < len(self._plan.items):
            self._index += 1
            self._enter_splash()
            return True
        self._show_results = True
        return False

    def previous(self) -> bool:
        if not self._active or self._index == 0:
            return False
        self._index -= 1
        self._enter_splash()
        return True

    def exit(self) -> None:
        self._plan = None
        self._index = 0
        self._active = False
        self._splash = False
        self._show_results = False
        self._results = {}

    def summary(self) -> PlanSummary:
        recorded = list(self._results.values())
        total = len(self._plan.items) if self._plan is not None else 0
        if not recorded:
            return PlanSummary(total_steps=total, completed=0, average_wpm=0.0, average_accuracy=0.0, total_time_ms=0)
        return PlanSummary(
            total_steps=total,
            completed=len(recorded),
            average_wpm=sum(r.wpm for r in recorded) / len(recorded),
            average_accuracy=sum(r.accuracy for r in recorded) / len(recorded),
            total_time_ms=sum(r.time_ms for r in recorded),
        )

    def _enter_splash(self) -> None:
        self._splash = True
        self._show_results = False
        if self._session.state is not SessionState.IDLE:
            self._session.reset()


class PlanRepository:
    def __init__(self, plans_dir: Optional[Path] = None) -> None:
        self._plans_dir = Path(plans_dir) if plans_dir else DEFAULT_PLANS_DIR
        self._plans = self._load_plans()

    def all(self) -> List[Plan]:
        return list(self._plans.values())

    def get(self, key: str) -> Plan:
        return self._plans[key]

    def _load_plans(self) -> Dict[str, Plan]:
        plans: Dict[str, Plan] = {}
        if not self._plans_dir.exists():
            logger.warning("Plans directory not found: %s", self._plans_dir)
            return plans

        for plan_path in sorted(self._plans_dir.glob("*.yaml")):
            try:
                raw = yaml.safe_load(plan_path.read_text(encoding="utf-8"))
            except yaml.YAMLError as e:
                raise ValueError(f"{plan_path.name}: invalid YAML: {e}") from e
            plans[plan_path.stem] = parse_plan(plan_path.stem, raw, plan_path.name)
        return plans


def parse_plan(key: str, raw: Any, origin: str = "<plan>") -> Plan:
    """Build a :class:`Plan` from its YAML mapping. Raises ValueError when malformed."""
    if not raw or not isinstance(raw, dict):
        raise ValueError(f"{origin}: expected YAML with 'title' and 'steps'")
    title = raw.get("title")
    steps = raw.get("steps")
    if not title or not isinstance(title, str):
        raise ValueError(f"{origin}: missing or invalid 'title'")
    if not isinstance(steps, list) or not steps:
        raise ValueError(f"{origin}: 'steps' must be a non-empty list")

    items: List[PlanItem] = []
    seen: set[str] = set()
    for n, step in enumerate(steps, start=1):
        if not isinstance(step, dict):
            raise ValueError(f"{origin}: step {n} is not a mapping")
        step_id = str(step.get("id") or f"{_slug(key)}-{n}")
        if step_id in seen:
            raise ValueError(f"{origin}: duplicate step id {step_id!r}")
        seen.add(step_id)
        try:
            mode = Mode(step.get("mode"))
        except ValueError:
            raise ValueError(f"{origin}: step {step_id!r} has unknown mode {step.get('mode')!r}") from None
        overrides = step.get("settings") or {}
        if not isinstance(overrides, dict):
            raise ValueError(f"{origin}: step {step_id!r} settings must be a mapping")
        try:
            Settings().merged(overrides)
        except ValueError as e:
            raise ValueError(f"{origin}: step {step_id!r}: {e}") from None
        items.append(
            PlanItem(
                id=step_id,
                mode=mode,
                settings=dict(overrides),
                title=str(step.get("title") or "").strip(),
                subtitle=str(step.get("subtitle") or "").strip(),
            )
        )
    return Plan(key=key, title=title.strip(), items=tuple(items))


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "step"
