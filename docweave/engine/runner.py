"""Adapter around the external documentation engine process."""

from __future__ import annotations

import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..errors import GenerationError
from ..logging import get_logger

_POLL_INTERVAL = 0.1
_TERMINATE_GRACE = 5.0

logger = get_logger("engine")


@dataclass
class EngineRequest:
    """Everything needed to render one generation unit."""

    unit: str
    command: List[str]
    config_path: Path
    output_dir: Path
    working_dir: Path
    log_path: Path
    env: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    cancel_event: Optional[threading.Event] = None


@dataclass
class EngineResult:
    exit_code: int
    log_path: Path
    cancelled: bool = False
    timed_out: bool = False


EngineFn = Callable[[EngineRequest], EngineResult]


class EngineRunner:
    """Invokes ``command + [config.json]`` in its own process.

    The merged stdout/stderr stream is written line by line to the request's log
    file so it survives the run. A custom ``runner`` replaces the process
    invocation entirely, which is how tests and in-process engines plug in.
    """

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        timeout: Optional[float] = None,
        env: Mapping[str, str] | None = None,
        runner: EngineFn | None = None,
    ) -> None:
        self.command = list(command or [])
        self.timeout = timeout
        self.env = dict(env or {})
        self._runner = runner or self._process_runner

    def run(
        self,
        unit: str,
        config_path: Path,
        *,
        output_dir: Path,
        working_dir: Path,
        log_path: Path,
        cancel_event: threading.Event | None = None,
    ) -> EngineResult:
        request = EngineRequest(
            unit=unit,
            command=list(self.command),
            config_path=config_path,
            output_dir=output_dir,
            working_dir=working_dir,
            log_path=log_path,
            env=dict(self.env),
            timeout=self.timeout,
            cancel_event=cancel_event,
        )
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return self._runner(request)

    @staticmethod
    def _process_runner(request: EngineRequest) -> EngineResult:
        if not request.command:
            raise GenerationError(request.unit, "no engine command is configured (set engine.command)")
        args = [*request.command, str(request.config_path)]
        env = os.environ.copy()
        env.update(request.env)
        request.working_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Starting engine for %s: %s", request.unit, " ".join(args))

        with request.log_path.open("w", encoding="utf-8") as log_handle:
            try:
                process = subprocess.Popen(
                    args,
                    cwd=request.working_dir,
                    env=env,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                )
            except FileNotFoundError as exc:
                raise GenerationError(
                    request.unit,
                    f"Unable to locate engine executable '{request.command[0]}'",
                    log_path=request.log_path,
                ) from exc

            pump = threading.Thread(
                target=_pump_output,
                args=(process, log_handle),
                name=f"docweave-log-{request.unit}",
                daemon=True,
            )
            pump.start()
            cancelled, timed_out = _wait(process, request)
            pump.join()

        return EngineResult(
            exit_code=process.returncode,
            log_path=request.log_path,
            cancelled=cancelled,
            timed_out=timed_out,
        )


def _pump_output(process: subprocess.Popen, log_handle) -> None:
    assert process.stdout is not None
    for line in process.stdout:
        log_handle.write(line)
        log_handle.flush()
    process.stdout.close()


def _wait(process: subprocess.Popen, request: EngineRequest) -> tuple[bool, bool]:
    deadline = time.monotonic() + request.timeout if request.timeout else None
    while True:
        try:
            process.wait(timeout=_POLL_INTERVAL)
            return False, False
        except subprocess.TimeoutExpired:
            pass
        if request.cancel_event is not None and request.cancel_event.is_set():
            logger.info("Cancelling engine for %s", request.unit)
            _terminate(process)
            return True, False
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Engine for %s exceeded %.0fs timeout", request.unit, request.timeout)
            _terminate(process)
            return False, True


def _terminate(process: subprocess.Popen) -> None:
    process.terminate()
    try:
        process.wait(timeout=_TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


__all__ = ["EngineFn", "EngineRequest", "EngineResult", "EngineRunner"]
