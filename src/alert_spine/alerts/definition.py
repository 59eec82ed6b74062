"""Base class for alert definitions.

A definition is one authored file in the alerts repository. Evaluating it
against a host produces an ``AlertInstance`` and an ``AppliesState``; the
evaluated instance is only readable after the first evaluation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from alert_spine.core.errors import AlertNotEvaluatedError
from alert_spine.domain.models import AlertInstance, AppliesState, HostContext


class AlertDefinition(ABC):
    """One alert definition file.

    Subclasses implement ``_build(host)``. A definition whose last result was
    ``ONCE`` is not re-evaluated: ``evaluate`` returns the cached state.
    """

    def __init__(self, repo_path: str | Path, path: str | Path):
        self.path = Path(path)
        try:
            self.filename = str(self.path.relative_to(Path(repo_path)))
        except ValueError:
            self.filename = str(self.path)
        self.text = self.path.read_text(encoding="utf-8")
        self._alert: AlertInstance | None = None
        self._applies = AppliesState.NEVER

    def __str__(self) -> str:
        return self.filename

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.filename!r})"

    @abstractmethod
    def _build(self, host: HostContext) -> tuple[AlertInstance, AppliesState]:
        """Render this definition for ``host``."""

    def evaluate(self, host: HostContext) -> AppliesState:
        if self._alert is not None and self._applies is AppliesState.ONCE:
            return self._applies
        alert, applies = self._build(host)
        self._alert = alert
        self._applies = AppliesState.coerce(applies)
        return self._applies

    @property
    def evaluated(self) -> bool:
        return self._alert is not None

    @property
    def current(self) -> AlertInstance | None:
        """The last evaluated instance, or None before the first evaluation."""
        return self._alert

    @property
    def alert(self) -> AlertInstance:
        if self._alert is None:
            raise AlertNotEvaluatedError(self.filename)
        return self._alert

    @property
    def applies(self) -> AppliesState:
        if self._alert is None:
            raise AlertNotEvaluatedError(self.filename)
        return self._applies
