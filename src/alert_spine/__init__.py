"""
alert-spine - alerting-as-code reconciliation engine.

Evaluates alert definitions against a live host inventory and a group
directory, then converges a remote alerting backend (Datadog) onto the
resulting desired state: create, update, delete, with an isolated dry-run mode.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
