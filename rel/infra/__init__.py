"""Concrete collaborators: the terraform adapter and simulated services."""

from .simulated import simulated_collaborators
from .terraform import TerraformCli

__all__ = ["TerraformCli", "simulated_collaborators"]
