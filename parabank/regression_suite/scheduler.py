"""Suite and scenario lifecycle orchestration."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from parabank.regression_suite.errors import (
    ReportGenerationError,
    SessionError,
    StepTimeoutError,
)
from parabank.regression_suite.models.report_stats import RunAggregate
from parabank.regression_suite.models.run_summary import (
    RunSummary,
    ScenarioResult,
    StepOutcome,
    StepResult,
)
from parabank.regression_suite.models.suite_config import (
    ExecutionProfile,
    SuiteSettings,
)
from parabank.regression_suite.reporting.pipeline import ReportingPipeline
from parabank.regression_suite.result_loader import write_run_summary
from parabank.regression_suite.session import (
    BrowserLauncher,
    ScenarioKind,
    SessionContext,
    launch_chromium,
)

logger = logging.getLogger(__name__)

StepAction = Callable[[SessionContext], Awaitable[None]]


class Step(BaseModel):
    """One executable step handed over by the BDD runner."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    text: str = Field(..., description="Step text")
    keyword: str = Field(default="Given", description="Gherkin keyword")
    action: StepAction = Field(..., description="Coroutine run with the session")


class Scenario(BaseModel):
    """One executable scenario handed over by the BDD runner."""

    id: str = Field(default="", description="Scenario identifier")
    name: str = Field(..., description="Scenario display name")
    feature: str = Field(..., description="Owning feature name")
    tags: list[str] = Field(default_factory=list, description="Scenario tags")
    steps: list[Step] = Field(default_factory=list, description="Ordered steps")


class LifecycleHook:
    """Base hook; override the transitions of interest."""

    async def before_suite(self, settings: SuiteSettings) -> None:
        """Run after the suite's output directories and counters are ready."""

    async def before_scenario(
        self, scenario: Scenario, session: SessionContext
    ) -> None:
        """Run after the scenario's session has been acquired."""

    async def after_scenario(
        self, scenario: Scenario, result: ScenarioResult, session: SessionContext
    ) -> None:
        """Run after classification and evidence capture, before release."""

    async def after_suite(self, outcome: "SuiteOutcome") -> None:
        """Run after the run summary has been written and reported."""


class SuiteState(Enum):
    """Suite-level lifecycle state."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"


class SuiteOutcome(BaseModel):
    """What a finished suite hands to its caller."""

    aggregate: RunAggregate = Field(..., description="Final counters")
    summary: RunSummary = Field(..., description="Results in encounter order")
    result_file: Path | None = Field(default=None, description="Written results")

    @property
    def exit_code(self) -> int:
        """Non-zero when any scenario failed."""
        return 1 if self.aggregate.failed else 0


class LifecycleScheduler:
    """Drives hooks, sessions and counters through a suite run."""

    def __init__(
        self,
        settings: SuiteSettings,
        profile: ExecutionProfile,
        hooks: Sequence[LifecycleHook] = (),
        launcher: BrowserLauncher = launch_chromium,
        reporter: ReportingPipeline | None = None,
    ) -> None:
        """Initialize an idle scheduler."""
        self.settings = settings
        self.profile = profile
        self.hooks = list(hooks)
        self.reporter = reporter
        self._launcher = launcher
        self._state = SuiteState.IDLE
        self._aggregate = RunAggregate()
        self._stop_scheduling = False

    @property
    def state(self) -> SuiteState:
        """Current suite state."""
        return self._state

    @property
    def aggregate(self) -> RunAggregate:
        """Copy of the current counters."""
        return self._aggregate.model_copy()

    async def run(self, scenarios: Sequence[Scenario]) -> SuiteOutcome:
        """Run the scenarios selected by the profile and report on them."""
        if self._state is not SuiteState.IDLE:
            raise RuntimeError(f"Scheduler cannot start from state {self._state.value}")

        await self._start_suite()

        selected = [s for s in scenarios if self.profile.matches(s.tags)]
        logger.info(
            f"Selected {len(selected)}/{len(scenarios)} scenarios "
            f"(tags='{self.profile.tags}', parallel={self.profile.parallel})"
        )

        semaphore = asyncio.Semaphore(self.profile.parallel)
        results = await asyncio.gather(
            *(self._schedule(scenario, semaphore) for scenario in selected)
        )

        summary = RunSummary()
        for scenario, result in zip(selected, results):
            if result is not None:
                summary.add(scenario.feature, result)

        return await self._finish_suite(summary)

    async def _start_suite(self) -> None:
        self._state = SuiteState.RUNNING
        logger.info("=" * 80)
        logger.info(f"ParaBank regression suite - Starting ({self.profile.name})")
        logger.info("=" * 80)

        for directory in (
            self.settings.reports_dir,
            self.settings.screenshots_dir,
            self.settings.html_report_dir,
            self.settings.pdf_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

        self._aggregate = RunAggregate(started_at=datetime.now(timezone.utc))
        self._stop_scheduling = False

        for hook in self.hooks:
            await hook.before_suite(self.settings)

    async def _schedule(
        self, scenario: Scenario, semaphore: asyncio.Semaphore
    ) -> ScenarioResult | None:
        async with semaphore:
            if self._stop_scheduling:
                logger.info(f"Fail-fast: not starting scenario '{scenario.name}'")
                return None
            result = await self.run_scenario(scenario)
            if result.status == "failed" and self.profile.fail_fast:
                self._stop_scheduling = True
            return result

    async def run_scenario(self, scenario: Scenario) -> ScenarioResult:
        """Run one scenario inside its own session and classify it."""
        self._aggregate.total += 1
        kind = ScenarioKind.from_tags(scenario.tags)
        session = SessionContext(scenario.name, self.settings, self._launcher)
        started_at = datetime.now(timezone.utc)
        logger.info(f"Scenario started: {scenario.name} [{kind.value}]")

        try:
            steps = await self._prepare_and_run(scenario, session, kind)
            result = ScenarioResult(
                id=scenario.id,
                name=scenario.name,
                tags=list(scenario.tags),
                steps=steps,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
            )
            self._record(result)

            if result.status == "failed":
                evidence = await session.capture_evidence(
                    scenario.name,
                    status=result.status,
                    error=result.error_message,
                    duration=result.duration,
                )
                result.evidence = [str(path) for path in evidence]

            for hook in self.hooks:
                try:
                    await hook.after_scenario(scenario, result, session)
                except Exception:
                    logger.exception(
                        f"after_scenario hook failed for '{scenario.name}'"
                    )
        finally:
            await session.release()

        logger.info(f"Scenario finished: {scenario.name} = {result.status}")
        return result

    async def _prepare_and_run(
        self, scenario: Scenario, session: SessionContext, kind: ScenarioKind
    ) -> list[StepResult]:
        try:
            await session.acquire(kind)
            for hook in self.hooks:
                await hook.before_scenario(scenario, session)
        except SessionError as e:
            return [_hook_failure("acquire browser session", str(e))]
        except Exception as e:
            logger.exception(f"before_scenario hook failed for '{scenario.name}'")
            return [_hook_failure("before scenario hook", _describe(e))]

        return await self._run_steps(scenario, session)

    async def _run_steps(
        self, scenario: Scenario, session: SessionContext
    ) -> list[StepResult]:
        timeout = self.settings.step_timeout
        results: list[StepResult] = []
        failed = False

        for step in scenario.steps:
            if failed:
                results.append(
                    StepResult(
                        name=step.text,
                        keyword=step.keyword,
                        result=StepOutcome(status="skipped"),
                    )
                )
                continue

            start = time.perf_counter()
            error: str | None = None
            try:
                await asyncio.wait_for(step.action(session), timeout=timeout)
            except StepTimeoutError as e:
                error = str(e)
            except asyncio.TimeoutError:
                error = str(
                    StepTimeoutError(f"Step '{step.text}' exceeded {timeout:g}s")
                )
            except Exception as e:
                error = _describe(e)

            duration = time.perf_counter() - start
            if error is None:
                await session.capture_step_screenshot(step.text)
            else:
                failed = True
                logger.error(f"Step failed in '{scenario.name}': {step.text}: {error}")

            results.append(
                StepResult(
                    name=step.text,
                    keyword=step.keyword,
                    result=StepOutcome(
                        status="failed" if failed else "passed",
                        duration=duration,
                        error_message=error,
                    ),
                )
            )

        return results

    def _record(self, result: ScenarioResult) -> None:
        if result.status == "passed":
            self._aggregate.passed += 1
        elif result.status == "failed":
            self._aggregate.failed += 1
        else:
            self._aggregate.skipped += 1

    async def _finish_suite(self, summary: RunSummary) -> SuiteOutcome:
        self._aggregate.finished_at = datetime.now(timezone.utc)
        aggregate = self._aggregate.model_copy()

        result_file: Path | None = None
        try:
            result_file = write_run_summary(
                summary, self.settings.reports_dir / self.profile.report_name
            )
        except OSError as e:
            logger.error(f"Failed to write run summary: {e}")

        if self.reporter is not None and result_file is not None:
            try:
                await self.reporter.run([result_file], archive=True)
            except ReportGenerationError as e:
                logger.warning(f"Report generation failed: {e}")
            except Exception:
                logger.exception("Unexpected error during report generation")

        outcome = SuiteOutcome(
            aggregate=aggregate, summary=summary, result_file=result_file
        )
        for hook in self.hooks:
            try:
                await hook.after_suite(outcome)
            except Exception:
                logger.exception("after_suite hook failed")

        self._state = SuiteState.DONE
        logger.info("=" * 80)
        logger.info(
            f"Suite finished: total={aggregate.total} passed={aggregate.passed} "
            f"failed={aggregate.failed} skipped={aggregate.skipped} "
            f"success_rate={aggregate.success_rate:.1%} "
            f"duration={aggregate.duration:.1f}s"
        )
        logger.info("=" * 80)
        return outcome


def _hook_failure(name: str, message: str) -> StepResult:
    return StepResult(
        name=name,
        keyword="Before",
        result=StepOutcome(status="failed", error_message=message),
    )


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__
