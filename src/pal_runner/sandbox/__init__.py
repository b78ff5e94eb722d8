"""Sandbox subsystem: provisioning, output relay, stdin and teardown of containers."""

from pal_runner.sandbox.policy import ResourcePolicy
from pal_runner.sandbox.provisioner import SandboxProvisioner
from pal_runner.sandbox.relay import StreamRelay
from pal_runner.sandbox.resources import allocate_cpu_budget
from pal_runner.sandbox.stdin import StdinChannel
from pal_runner.sandbox.teardown import Teardown

__all__ = [
    "ResourcePolicy",
    "SandboxProvisioner",
    "StdinChannel",
    "StreamRelay",
    "Teardown",
    "allocate_cpu_budget",
]
