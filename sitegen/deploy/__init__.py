"""Deployment of generated projects."""

from .trigger import DeploymentTrigger

__all__ = ["DeploymentTrigger"]
