"""Stage table: which executor runs for each state, and what comes next."""

from dataclasses import dataclass
from typing import Iterator, Mapping

from upgrader.models.config import UpgraderConfig
from upgrader.models.stage import SUCCESSORS, UpgradeStage
from upgrader.services.executors import (
    PrepareSystemStage,
    ReleaseUpgradeStage,
    StageExecutor,
)
from upgrader.services.package_manager import AptPackageManager
from upgrader.services.system_config import SystemConfigurator


@dataclass(frozen=True)
class StageTransition:
    """One row of the stage table."""

    executor: StageExecutor
    next_stage: UpgradeStage


class UpgradePlan(Mapping[UpgradeStage, StageTransition]):
    """Inspectable mapping current stage → (executor, next stage).

    Covers every non-terminal stage exactly once; the terminal stage has no
    row. Validated on construction.
    """

    def __init__(self, transitions: Mapping[UpgradeStage, StageTransition]):
        self._transitions = dict(transitions)
        self.validate()

    def __getitem__(self, stage: UpgradeStage) -> StageTransition:
        return self._transitions[stage]

    def __iter__(self) -> Iterator[UpgradeStage]:
        return iter(self._transitions)

    def __len__(self) -> int:
        return len(self._transitions)

    def validate(self) -> None:
        """Check the table forms one chain from INITIAL to COMPLETE.

        Raises:
            ValueError: If a stage is missing, terminal has a row, or the
                chain loops
        """
        if UpgradeStage.COMPLETE in self._transitions:
            raise ValueError("Terminal stage must not have an executor")

        for stage in UpgradeStage:
            if not stage.is_terminal and stage not in self._transitions:
                raise ValueError(f"No executor registered for stage {stage.value}")

        seen = set()
        stage = UpgradeStage.INITIAL
        while not stage.is_terminal:
            if stage in seen:
                raise ValueError(f"Stage table loops at {stage.value}")
            seen.add(stage)
            stage = self._transitions[stage].next_stage

    def path(self) -> list[UpgradeStage]:
        """Ordered stages from INITIAL through COMPLETE."""
        stages = [UpgradeStage.INITIAL]
        while not stages[-1].is_terminal:
            stages.append(self._transitions[stages[-1]].next_stage)
        return stages

    @classmethod
    def default(
        cls,
        config: UpgraderConfig,
        packages: AptPackageManager,
        system: SystemConfigurator,
    ) -> "UpgradePlan":
        """Bind the production executors to the fixed successor table."""
        executors: dict[UpgradeStage, StageExecutor] = {
            UpgradeStage.INITIAL: PrepareSystemStage(packages, system),
            UpgradeStage.UPGRADE_22_04: ReleaseUpgradeStage(
                "22.04",
                packages,
                system,
                settle_seconds=config.settle_seconds.get("22.04", 0),
            ),
            UpgradeStage.UPGRADE_24_04: ReleaseUpgradeStage(
                "24.04",
                packages,
                system,
                settle_seconds=config.settle_seconds.get("24.04", 0),
                prepare_first=True,
            ),
        }
        return cls(
            {
                stage: StageTransition(executor, SUCCESSORS[stage])
                for stage, executor in executors.items()
            }
        )
