"""
Observability module for tracking pipeline stages, retries and metrics.
Provides structured logging, execution tracing, and metrics collection.

One ObservabilityLogger is created per pipeline run, so concurrent runs never
share execution state. The underlying "observability" logger and its file
handler are configured once per process by configure_observability_logging().
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
from dataclasses import dataclass, asdict, field
from enum import Enum

OBSERVABILITY_LOGGER_NAME = "improv_deck.observability"


class StageStatus(Enum):
    """Status of a pipeline stage."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageExecution:
    """Represents a single pipeline stage execution."""
    stage_name: str
    start_time: float
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None
    status: StageStatus = StageStatus.SUCCESS
    retry_count: int = 0
    message: Optional[str] = None

    def finish(self, status: StageStatus = StageStatus.SUCCESS, message: Optional[str] = None):
        """Mark execution as finished."""
        self.end_time = time.time()
        self.duration_seconds = self.end_time - self.start_time
        self.status = status
        if message:
            self.message = message

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result['status'] = self.status.value
        return result


@dataclass
class PipelineMetrics:
    """Metrics for one pipeline run."""
    pipeline_start_time: float
    pipeline_end_time: Optional[float] = None
    total_duration_seconds: Optional[float] = None
    successful_stages: int = 0
    failed_stages: int = 0
    total_retries: int = 0
    stage_executions: List[StageExecution] = field(default_factory=list)

    def add_execution(self, execution: StageExecution):
        self.stage_executions.append(execution)
        if execution.status == StageStatus.SUCCESS:
            self.successful_stages += 1
        elif execution.status == StageStatus.FAILED:
            self.failed_stages += 1
        self.total_retries += execution.retry_count

    def finish(self):
        """Mark pipeline as finished."""
        self.pipeline_end_time = time.time()
        self.total_duration_seconds = self.pipeline_end_time - self.pipeline_start_time

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'pipeline_start_time': self.pipeline_start_time,
            'pipeline_end_time': self.pipeline_end_time,
            'total_duration_seconds': self.total_duration_seconds,
            'successful_stages': self.successful_stages,
            'failed_stages': self.failed_stages,
            'total_retries': self.total_retries,
            'stage_executions': [execution.to_dict() for execution in self.stage_executions],
        }


def configure_observability_logging(log_file: Optional[str] = None, console: bool = True) -> logging.Logger:
    """
    Attach handlers to the observability logger. Safe to call more than once.

    Args:
        log_file: Path to structured log file (optional)
        console: Also echo INFO lines to the console
    """
    obs_logger = logging.getLogger(OBSERVABILITY_LOGGER_NAME)
    obs_logger.setLevel(logging.DEBUG)
    obs_logger.handlers.clear()

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        # Structured format: timestamp | level | name | message | data
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(name)s | %(message)s | %(data)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        obs_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(message)s',
            datefmt='%H:%M:%S'
        ))
        obs_logger.addHandler(console_handler)

    return obs_logger


class ObservabilityLogger:
    """Tracks the stages of one pipeline run."""

    def __init__(self, trace_file: Optional[str] = None):
        self.trace_file = trace_file
        self.metrics: Optional[PipelineMetrics] = None
        self._active: Dict[str, StageExecution] = {}
        self.logger = logging.getLogger(OBSERVABILITY_LOGGER_NAME)

    def _log(self, level: int, message: str, data: Dict):
        self.logger.log(level, message, extra={'data': json.dumps(data, default=str)})

    def start_pipeline(self, pipeline_name: str = "improv_deck_pipeline"):
        """Start tracking a new pipeline execution."""
        self.metrics = PipelineMetrics(pipeline_start_time=time.time())
        self._active.clear()
        self._log(logging.INFO, f"Pipeline started: {pipeline_name}", {
            'pipeline_name': pipeline_name,
            'start_time': datetime.now().isoformat(),
        })

    def start_stage(self, stage_name: str) -> StageExecution:
        execution = StageExecution(stage_name=stage_name, start_time=time.time())
        self._active[stage_name] = execution
        self._log(logging.INFO, f"Stage started: {stage_name}", {
            'stage_name': stage_name,
            'start_time': datetime.now().isoformat(),
        })
        return execution

    def record_retry(self, stage_name: str, attempt: int, reason: str):
        """Count a retry against an active stage (e.g. a rate-limit backoff)."""
        execution = self._active.get(stage_name)
        if execution is not None:
            execution.retry_count += 1
        self._log(logging.INFO, f"Stage retry: {stage_name} (attempt {attempt})", {
            'stage_name': stage_name,
            'attempt': attempt,
            'reason': reason,
            'timestamp': datetime.now().isoformat(),
        })

    def finish_stage(self, stage_name: str, status: StageStatus = StageStatus.SUCCESS, message: Optional[str] = None):
        """
        Finish tracking a stage.

        Args:
            stage_name: Stage passed to start_stage
            status: Execution status
            message: Error or summary message
        """
        execution = self._active.pop(stage_name, None)
        if execution is None:
            self._log(logging.WARNING, f"Attempted to finish stage '{stage_name}' but it is not active", {})
            return

        execution.finish(status, message)
        if self.metrics:
            self.metrics.add_execution(execution)

        log_data = {
            'stage_name': stage_name,
            'duration_seconds': execution.duration_seconds,
            'status': status.value,
            'retry_count': execution.retry_count,
        }
        if message:
            log_data['message'] = message

        if status == StageStatus.SUCCESS:
            self._log(logging.INFO, f"Stage completed: {stage_name}", log_data)
        else:
            self._log(logging.WARNING, f"Stage finished with status {status.value}: {stage_name}", log_data)

    def finish_pipeline(self, save_trace: bool = True) -> Optional[PipelineMetrics]:
        """
        Finish tracking the pipeline and generate summary.

        Args:
            save_trace: Whether to save trace history to JSON file

        Returns:
            PipelineMetrics object
        """
        if not self.metrics:
            self._log(logging.WARNING, "Attempted to finish pipeline but none was started", {})
            return None

        for stage_name in list(self._active):
            self.finish_stage(stage_name, StageStatus.SKIPPED, "Pipeline finished")

        self.metrics.finish()
        self._log(logging.INFO, "Pipeline completed", {
            'total_duration_seconds': self.metrics.total_duration_seconds,
            'successful_stages': self.metrics.successful_stages,
            'failed_stages': self.metrics.failed_stages,
            'total_retries': self.metrics.total_retries,
        })

        if save_trace and self.trace_file:
            self.save_trace_history()

        return self.metrics

    def save_trace_history(self):
        """Append this run to the trace history JSON file."""
        if not self.metrics or not self.trace_file:
            return

        trace_path = Path(self.trace_file)
        trace_path.parent.mkdir(parents=True, exist_ok=True)

        history = []
        if trace_path.exists():
            try:
                with open(trace_path, 'r') as f:
                    history = json.load(f).get('runs', [])
            except (OSError, ValueError) as e:
                self.logger.warning(f"Could not read trace history, starting a new one: {e}", extra={'data': '{}'})

        history.append({
            'pipeline_metrics': self.metrics.to_dict(),
            'timestamp': datetime.now().isoformat(),
        })
        with open(trace_path, 'w') as f:
            json.dump({'version': '1.0', 'runs': history}, f, indent=2, default=str)

    def print_metrics_summary(self):
        """Print a human-readable metrics summary."""
        if not self.metrics or self.metrics.total_duration_seconds is None:
            return

        print("\n" + "=" * 60)
        print("PIPELINE METRICS SUMMARY")
        print("=" * 60)
        print(f"Total Duration: {self.metrics.total_duration_seconds:.2f} seconds")
        print(f"Successful stages: {self.metrics.successful_stages}")
        print(f"Failed stages: {self.metrics.failed_stages}")
        print(f"Rate-limit retries: {self.metrics.total_retries}")
        print("-" * 60)
        for execution in self.metrics.stage_executions:
            retry_info = f" ({execution.retry_count} retries)" if execution.retry_count else ""
            print(f"[{execution.status.value}] {execution.stage_name}{retry_info}: {execution.duration_seconds:.2f}s")
            if execution.message and execution.status == StageStatus.FAILED:
                print(f"   Error: {execution.message}")
        print("=" * 60 + "\n")
