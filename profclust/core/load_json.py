#!/usr/bin/env python

"""
Load a Project object from a project JSON file.
"""

from pathlib import Path
from loguru import logger
from profclust.core.exceptions import ConfigurationError
from profclust.schema import ProjectSchema
from profclust.core.project import Project

logger = logger.bind(name="profclust")


def load_json(json_file: Path | str) -> Project:
    """Return a Project object loaded from a project JSON file."""
    json_file = Path(json_file)
    if not json_file.exists():
        raise ConfigurationError(f"JSON file not found: {json_file}")
    proj = ProjectSchema.model_validate_json(json_file.read_text(encoding="utf-8"))
    data = Project(proj.params.project_name)
    data.params = proj.params
    data.cluster_stats = proj.cluster_stats
    data.profile_stats = proj.profile_stats
    data.stats_files = proj.stats_files
    logger.info(f"loaded Project {data.name} from JSON file")
    return data
