"""Step engine: runs a fixed DAG of typed steps with one fan-out/join stage.

A workflow is an ordered list of stages. Each stage is either one step or
the single parallel stage, whose branches run concurrently and are joined
into one input for the next step.

Steps only ever see their own input: an instance of their ``input_type``
dataclass, built by the engine from exactly the declared fields. A field
can come from one of three places:
- ``forward``: fields of the original workflow request
- ``needs``: ``{field: step_id}``, the whole output of an earlier step
- otherwise the preceding stage (fields of its output, or branch names
  after a join)
Declaring a field in both ``forward`` and ``needs`` is a contract error.

Branch failures never cancel siblings. A failed step with a ``fallback``
produces that fallback's sentinel output and is recorded as degraded.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from types import MappingProxyType
from typing import Any

from loguru import logger

STATUS_SUCCESS = "success"
STATUS_DEGRADED = "degraded"
STATUS_FAILED = "failed"


class WorkflowError(Exception):
    pass


class StepContractError(WorkflowError):
    """A step's input could not be built or its output has the wrong type."""


class StepFailedError(WorkflowError):
    """A step without a usable fallback failed. ``steps`` holds the run's records so far."""

    def __init__(self, step_id: str, error: BaseException) -> None:
        super().__init__(f"step {step_id!r} failed: {error}")
        self.step_id = step_id
        self.error = error
        self.steps: tuple[StepRecord, ...] = ()


@dataclass(frozen=True)
class Step:
    """One named unit of work with dataclass input/output contracts."""

    id: str
    input_type: type
    output_type: type
    run: Callable[[Any], Awaitable[Any]]
    description: str = ""
    forward: tuple[str, ...] = ()
    needs: Mapping[str, str] = field(default_factory=dict)
    fallback: Callable[[BaseException, Any], Any] | None = None  # (error, step input) -> output
    timeout: float | None = None

    def __post_init__(self) -> None:
        for contract in (self.input_type, self.output_type):
            if not (isinstance(contract, type) and is_dataclass(contract)):
                raise StepContractError(f"step {self.id!r}: contracts must be dataclass types")
        declared = set(_init_fields(self.input_type))
        both = set(self.forward) & set(self.needs)
        if both:
            raise StepContractError(
                f"step {self.id!r}: {sorted(both)} declared in both forward and needs"
            )
        for name in (*self.forward, *self.needs):
            if name not in declared:
                raise StepContractError(
                    f"step {self.id!r}: {name!r} is not a field of {self.input_type.__name__}"
                )
        object.__setattr__(self, "needs", MappingProxyType(dict(self.needs)))


@dataclass(frozen=True)
class StepRecord:
    step_id: str
    status: str
    duration_sec: float
    error: str | None = None


@dataclass(frozen=True)
class WorkflowRun:
    run_id: str
    workflow_id: str
    output: Any
    steps: tuple[StepRecord, ...]

    @property
    def degraded(self) -> bool:
        return any(r.status != STATUS_SUCCESS for r in self.steps)

    def record(self, step_id: str) -> StepRecord | None:
        return next((r for r in self.steps if r.step_id == step_id), None)


class WorkflowContext:
    """Per-run state: the original request and completed step outputs.

    Owned by the engine. Steps never receive it; they get values from it
    only through their declared ``forward`` and ``needs``.
    """

    def __init__(self, workflow_id: str, request: Any) -> None:
        self.run_id = uuid.uuid4().hex
        self.workflow_id = workflow_id
        self.inputs: Mapping[str, Any] = MappingProxyType(_shallow_fields(request))
        self._outputs: dict[str, Any] = {}
        self.records: list[StepRecord] = []

    def set_output(self, step_id: str, output: Any) -> None:
        self._outputs[step_id] = output

    def output_of(self, step_id: str) -> Any:
        if step_id not in self._outputs:
            raise StepContractError(f"output of step {step_id!r} is not available")
        return self._outputs[step_id]

    @property
    def tag(self) -> str:
        return f"{self.workflow_id}/{self.run_id[:8]}"


@dataclass(frozen=True)
class _ParallelStage:
    branches: Mapping[str, Step]


class Workflow:
    """Builder + runner for a linear workflow with one parallel stage."""

    def __init__(self, workflow_id: str, input_type: type, output_type: type | None = None) -> None:
        if not is_dataclass(input_type):
            raise WorkflowError("workflow input must be a dataclass type")
        self.id = workflow_id
        self.input_type = input_type
        self.output_type = output_type
        self._stages: list[Step | _ParallelStage] = []
        self._step_ids: set[str] = set()

    @property
    def step_ids(self) -> list[str]:
        ids: list[str] = []
        for stage in self._stages:
            if isinstance(stage, _ParallelStage):
                ids.extend(s.id for s in stage.branches.values())
            else:
                ids.append(stage.id)
        return ids

    def then(self, step: Step) -> "Workflow":
        self._register(step)
        self._stages.append(step)
        return self

    def parallel(self, **branches: Step) -> "Workflow":
        """Add the fan-out stage. Branch names become the join's field names."""
        if any(isinstance(s, _ParallelStage) for s in self._stages):
            raise WorkflowError(f"workflow {self.id!r} already has a parallel stage")
        if len(branches) < 2:
            raise WorkflowError("a parallel stage needs at least two branches")
        if not self._stages:
            raise WorkflowError("a parallel stage cannot be the first stage")
        # siblings may not depend on each other
        for step in branches.values():
            self._check(step)
        for step in branches.values():
            self._register(step)
        self._stages.append(_ParallelStage(MappingProxyType(dict(branches))))
        return self

    def _register(self, step: Step) -> None:
        self._check(step)
        self._step_ids.add(step.id)

    def _check(self, step: Step) -> None:
        if step.id in self._step_ids:
            raise WorkflowError(f"duplicate step id {step.id!r}")
        request_fields = set(_init_fields(self.input_type))
        for name in step.forward:
            if name not in request_fields:
                raise StepContractError(
                    f"step {step.id!r} forwards {name!r}, not a field of {self.input_type.__name__}"
                )
        for name, source in step.needs.items():
            if source not in self._step_ids:
                raise StepContractError(
                    f"step {step.id!r} needs {source!r} for {name!r}, which does not run earlier"
                )

    async def run(self, request: Any) -> WorkflowRun:
        if not isinstance(request, self.input_type):
            raise WorkflowError(
                f"workflow {self.id!r} expects {self.input_type.__name__}, got {type(request).__name__}"
            )
        if not self._stages:
            raise WorkflowError(f"workflow {self.id!r} has no steps")

        ctx = WorkflowContext(self.id, request)
        logger.info(f"[WORKFLOW] {ctx.tag} started")
        previous: Mapping[str, Any] = ctx.inputs
        output: Any = request

        try:
            for stage in self._stages:
                if isinstance(stage, _ParallelStage):
                    output = await self._run_parallel(stage, previous, ctx)
                    previous = output
                else:
                    step_input = _build_input(stage, previous, ctx)
                    output = await _execute(stage, step_input, ctx)
                    previous = _shallow_fields(output)
        except StepFailedError as e:
            e.steps = tuple(ctx.records)
            raise

        if self.output_type is not None and not isinstance(output, self.output_type):
            raise StepContractError(
                f"workflow {self.id!r} produced {type(output).__name__}, "
                f"expected {self.output_type.__name__}"
            )

        run = WorkflowRun(
            run_id=ctx.run_id,
            workflow_id=self.id,
            output=output,
            steps=tuple(ctx.records),
        )
        logger.info(f"[WORKFLOW] {ctx.tag} finished{' (degraded)' if run.degraded else ''}")
        return run

    async def _run_parallel(
        self,
        stage: _ParallelStage,
        previous: Mapping[str, Any],
        ctx: WorkflowContext,
    ) -> Mapping[str, Any]:
        # Contract errors surface before any branch starts
        inputs = {name: _build_input(step, previous, ctx) for name, step in stage.branches.items()}
        results = await asyncio.gather(
            *(_execute(step, inputs[name], ctx) for name, step in stage.branches.items()),
            return_exceptions=True,
        )

        joined: dict[str, Any] = {}
        first_error: BaseException | None = None
        for name, result in zip(stage.branches, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result  # cancellation / interpreter exit
                first_error = first_error or result
                continue
            joined[name] = result

        if first_error is not None:
            raise first_error
        return MappingProxyType(joined)


async def _execute(step: Step, step_input: Any, ctx: WorkflowContext) -> Any:
    loop = asyncio.get_running_loop()
    started = loop.time()
    status = STATUS_SUCCESS
    error_text: str | None = None

    try:
        if step.timeout is not None:
            output = await asyncio.wait_for(step.run(step_input), timeout=step.timeout)
        else:
            output = await step.run(step_input)
    except Exception as e:
        error_text = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
        if step.fallback is None:
            ctx.records.append(StepRecord(step.id, STATUS_FAILED, loop.time() - started, error_text))
            logger.error(f"[WORKFLOW] {ctx.tag} step {step.id} failed: {error_text}")
            raise StepFailedError(step.id, e) from e
        logger.warning(f"[WORKFLOW] {ctx.tag} step {step.id} degraded: {error_text}")
        try:
            output = step.fallback(e, step_input)
        except Exception as fallback_error:
            error_text = f"{error_text}; fallback {type(fallback_error).__name__}: {fallback_error}"
            ctx.records.append(StepRecord(step.id, STATUS_FAILED, loop.time() - started, error_text))
            logger.error(f"[WORKFLOW] {ctx.tag} step {step.id} fallback failed: {error_text}")
            raise StepFailedError(step.id, fallback_error) from fallback_error
        status = STATUS_DEGRADED

    if not isinstance(output, step.output_type):
        raise StepContractError(
            f"step {step.id!r} returned {type(output).__name__}, expected {step.output_type.__name__}"
        )

    duration = loop.time() - started
    ctx.set_output(step.id, output)
    ctx.records.append(StepRecord(step.id, status, duration, error_text))
    logger.debug(f"[WORKFLOW] {ctx.tag} step {step.id} {status} in {duration:.2f}s")
    return output


def _build_input(step: Step, previous: Mapping[str, Any], ctx: WorkflowContext) -> Any:
    kwargs: dict[str, Any] = {}
    for name, has_default in _init_fields(step.input_type).items():
        if name in step.forward:
            kwargs[name] = ctx.inputs[name]
        elif name in step.needs:
            kwargs[name] = ctx.output_of(step.needs[name])
        elif name in previous:
            kwargs[name] = previous[name]
        elif not has_default:
            raise StepContractError(f"step {step.id!r}: no source for required field {name!r}")

    return step.input_type(**kwargs)


def _init_fields(dataclass_type: type) -> dict[str, bool]:
    """Constructor fields of a dataclass → whether each has a default."""
    return {
        f.name: (f.default is not MISSING or f.default_factory is not MISSING)
        for f in fields(dataclass_type)
        if f.init
    }


def _shallow_fields(value: Any) -> dict[str, Any]:
    # dataclasses.asdict would deep-copy nested values; steps share them read-only
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in fields(value)}
    return {}
