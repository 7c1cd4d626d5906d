"""Pipeline orchestration and stage management."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

import pandas as pd
from rich.console import Console

from src.config.schemas import PipelineConfig
from src.pipeline.timeouts import PipelineCancelled

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Base class for pipeline stages."""

    def __init__(self, name: str, config: PipelineConfig):
        """
        Initialize pipeline stage.

        Args:
            name: Stage name
            config: Pipeline configuration
        """
        self.name = name
        self.config = config
        self.console = Console()

    @abstractmethod
    def run(self, context: dict[str, Any]) -> dict[str, Any]:
        """
        Execute stage logic.

        Args:
            context: Pipeline context with results from previous stages

        Returns:
            Updated context with this stage's results
        """
        pass


class Pipeline:
    """Pipeline orchestrator."""

    def __init__(self, config: PipelineConfig):
        """
        Initialize pipeline.

        Args:
            config: Pipeline configuration
        """
        self.config = config
        self.console = Console()
        self.stages: list[PipelineStage] = []

    def add_stage(self, stage: PipelineStage) -> None:
        """
        Add a stage to the pipeline.

        Args:
            stage: Stage to add
        """
        self.stages.append(stage)

    def run(
        self,
        inputs: dict[str, Any],
        output_dir: str | Path,
        cancel_event: threading.Event | None = None,
    ) -> dict[str, Any]:
        """
        Run all stages in order for one video.

        Args:
            inputs: Initial context entries (e.g. "detections_path", "video_path")
            output_dir: Directory for outputs
            cancel_event: When set, the run stops before the next stage

        Returns:
            Final pipeline context

        Raises:
            PipelineCancelled: If ``cancel_event`` was set during the run
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        source = inputs.get("video_path") or inputs.get("detections_path") or "inputs"
        self.console.print(f"\n[bold green]Starting pipeline for: {Path(source).name}[/bold green]\n")

        context = {
            **inputs,
            "output_dir": str(output_dir),
            "start_time": datetime.now().isoformat(),
            "outputs": {},
        }

        for i, stage in enumerate(self.stages, 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Pipeline cancelled before stage %s", stage.name)
                raise PipelineCancelled(f"Cancelled before stage {stage.name}")

            self.console.print(
                f"[bold cyan]Stage {i}/{len(self.stages)}: {stage.name}[/bold cyan]"
            )
            logger.info("Running stage %s", stage.name)

            try:
                context = stage.run(context)
            except Exception as e:
                self.console.print(f"[bold red]Error in stage {stage.name}: {e}[/bold red]")
                raise

        context["end_time"] = datetime.now().isoformat()
        manifest_path = output_dir / "run_manifest.json"
        self._save_manifest(context, manifest_path)
        context["outputs"]["manifest"] = str(manifest_path)

        self.console.print(f"\n[bold green]Pipeline complete! Output: {output_dir}[/bold green]\n")

        return context

    def _save_manifest(self, context: dict[str, Any], path: Path) -> None:
        """
        Save run manifest.

        Args:
            context: Pipeline context
            path: Output path
        """
        manifest = {
            "schema_version": "1.0",
            "detections_path": context.get("detections_path"),
            "video_path": context.get("video_path"),
            "output_dir": context["output_dir"],
            "start_time": context["start_time"],
            "end_time": context["end_time"],
            "config": self.config.model_dump(),
            "stages": [stage.name for stage in self.stages],
            "degraded": context.get("degraded", []),
            "fusion_stage_counts": context.get("fusion_stage_counts", {}),
            "outputs": context["outputs"],
        }

        with open(path, "w") as f:
            json.dump(manifest, f, indent=2)


def save_records(
    records: list[dict[str, Any]],
    output_path: str | Path,
    fmt: Literal["jsonl", "csv", "parquet"] = "jsonl",
) -> Path:
    """
    Save flat records as JSONL, CSV or Parquet.

    Args:
        records: List of record dictionaries
        output_path: Output path; the suffix is replaced to match ``fmt``
        fmt: Output format

    Returns:
        Path written
    """
    output_path = Path(output_path).with_suffix(f".{fmt}")

    if fmt == "jsonl":
        with open(output_path, "w") as f:
            for record in records:
                f.write(json.dumps(record) + "\n")
        return output_path

    df = pd.DataFrame(records)
    if fmt == "csv":
        df.to_csv(output_path, index=False)
    elif fmt == "parquet":
        df.to_parquet(output_path, index=False)
    else:
        raise ValueError(f"Unsupported records format: {fmt}")
    return output_path


def save_json(data: Any, output_path: str | Path) -> Path:
    """Save a JSON document with indentation."""
    output_path = Path(output_path)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)
    return output_path
