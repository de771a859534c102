"""Deploy library: request parameters, progress events, deploy orchestration."""

from vmdock.deploy.events import EventKind, ProgressChannel, ProgressEvent
from vmdock.deploy.orchestrate import create_vm, deploy_events, run_deploy
from vmdock.deploy.params import DeploymentRequest

__all__ = [
    "DeploymentRequest",
    "EventKind",
    "ProgressEvent",
    "ProgressChannel",
    "create_vm",
    "run_deploy",
    "deploy_events",
]
