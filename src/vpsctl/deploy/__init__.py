"""Deployment orchestration."""

from vpsctl.deploy.models import DeployResult, DeployTarget, ServiceSummary, StepResult
from vpsctl.deploy.pipeline import DeployRunner

__all__ = ["DeployResult", "DeployRunner", "DeployTarget", "ServiceSummary", "StepResult"]
