#!/usr/bin/env python

"""Abstract Base class for Step class objects called by Project.run().

Each step of the pipeline creates a subclass that inherits from this
class. The base class logs a header and creates the output dir.
Unlike a fresh start, a re-run never deletes earlier results: each
step skips work whose outputs already exist unless forced, which is
how an interrupted run is resumed.
"""

from typing import TypeVar
from pathlib import Path
from abc import ABC, abstractmethod
from loguru import logger

Project = TypeVar("Project")
logger = logger.bind(name="profclust")

HEADERS = {
    1: "Step 1: Clustering sequences within size buckets",
    2: "Step 2: Aligning, purifying, and building cluster profiles",
}
SUFFIX = {
    1: "clusters",
    2: "profiles",
}


class BaseStep(ABC):
    """Abstract Base Class for Step class objects.

    Parameters
    ----------
    data: Project
        The project whose params are used and whose stats are updated.
    step: int
        1 (clustering) or 2 (profiles).
    force: bool
        Redo work even if its outputs exist.
    quiet: bool
        Do not log the step header.
    """
    def __init__(self, data: Project, step: int, force: bool = False, quiet: bool = False):
        self.data = data
        self.step = step
        self.force = force
        self.quiet = quiet
        self.stepdir: Path = None
        """: Output dir used during this step."""

        self._print_headers()
        self._setup_dirs()

    def _print_headers(self) -> None:
        """log the header for this step"""
        if not self.quiet:
            logger.info(HEADERS[self.step])

    def _setup_dirs(self) -> None:
        """Create the output dir for this step, keeping any contents."""
        self.stepdir = self.data.params.project_dir / f"{self.data.name}_{SUFFIX[self.step]}"
        logger.debug(f"using dir {self.stepdir}")
        self.stepdir.mkdir(parents=True, exist_ok=True)

    @abstractmethod
    def run(self) -> None:
        """Run the step and store its stats on the project."""
