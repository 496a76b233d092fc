"""Workflow template loading.

A template is a directory under the workflows directory. Every ``*.yaml``
file below it, at any depth, is one workflow.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Union

import yaml

from ipcrawler.core.errors import IPCrawlerError
from ipcrawler.core.logging import get_logger
from ipcrawler.workflow.models import Workflow, WorkflowDefinitionError, workflow_key

LOGGER = get_logger(__name__)

WORKFLOW_SUFFIX = ".yaml"


class WorkflowLoadError(IPCrawlerError):
    """Workflow files could not be found or parsed."""


def load_workflow(path: Path) -> Workflow:
    """Load a single workflow definition file.

    Raises:
        WorkflowLoadError: If the file cannot be read or is invalid.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise WorkflowLoadError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise WorkflowLoadError(f"Failed to read {path}: {e}") from e

    if data is None:
        raise WorkflowLoadError(f"Workflow file is empty: {path}")

    try:
        return Workflow.from_dict(data)
    except WorkflowDefinitionError as e:
        raise WorkflowLoadError(f"Invalid workflow {path}: {e}") from e


def load_template_workflows(
    workflows_dir: Union[str, Path],
    template: str,
) -> Dict[str, Workflow]:
    """Load every workflow of a template.

    Args:
        workflows_dir: Root directory holding one directory per template.
        template: Template name.

    Returns:
        Mapping of workflow key (``{tool}_{basename}``) to Workflow.

    Raises:
        WorkflowLoadError: If the template directory is missing or a file
            is invalid.
    """
    template_dir = Path(workflows_dir) / template
    if not template_dir.is_dir():
        raise WorkflowLoadError(f"template directory not found: {template_dir}")

    workflows: Dict[str, Workflow] = {}
    for path in sorted(template_dir.rglob(f"*{WORKFLOW_SUFFIX}")):
        if not path.is_file():
            continue
        workflow = load_workflow(path)
        key = workflow_key(workflow, path.name[: -len(WORKFLOW_SUFFIX)])
        if key in workflows:
            LOGGER.warning(f"Workflow {path} overrides an earlier definition of {key}")
        workflows[key] = workflow
        LOGGER.debug(f"Loaded workflow {key} from {path}")

    return workflows
