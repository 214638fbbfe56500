"""
Patching pipeline — turn the stock app into one that loads mods.

Stages run strictly in order and never go back:

    NOT_STARTED → MOVING_TO_TEMP → PATCHING → SIGNING
        → UNINSTALLING_ORIGINAL → INSTALLING_MODDED → SUCCEEDED

Any stage failure moves the pipeline to FAILED and raises
``PatchingStageError`` naming the stage. Completed stages are not
undone: files left in the work directory stay there, and a rerun starts
from a fresh copy. ``InstalledApp.is_modded`` is set only on success.

``preflight`` must pass before a pipeline is built. The caller holds
the operation lock for the whole run.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path

from modpatcher.core.domain.version import VersionParseFailure, parse_version
from modpatcher.core.models.app import InstalledApp
from modpatcher.core.services.device import DeviceBridge, DeviceError
from modpatcher.core.services.toolchain import Toolchain, ToolchainError

logger = logging.getLogger(__name__)


class PatchingStage(StrEnum):
    NOT_STARTED = "not_started"
    MOVING_TO_TEMP = "moving_to_temp"
    PATCHING = "patching"
    SIGNING = "signing"
    UNINSTALLING_ORIGINAL = "uninstalling_original"
    INSTALLING_MODDED = "installing_modded"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


WORKING_STAGES = [
    PatchingStage.MOVING_TO_TEMP,
    PatchingStage.PATCHING,
    PatchingStage.SIGNING,
    PatchingStage.UNINSTALLING_ORIGINAL,
    PatchingStage.INSTALLING_MODDED,
]


def stage_progress(stage: PatchingStage) -> str:
    """``"n/5"`` for a working stage, empty otherwise."""
    if stage not in WORKING_STAGES:
        return ""
    return f"{WORKING_STAGES.index(stage) + 1}/{len(WORKING_STAGES)}"


# ── Errors ──────────────────────────────────────────────────────


class PatchingError(Exception):
    """Base for everything that stops a patch."""


class PreflightError(PatchingError):
    """The app is not in a state that can be patched."""


class AppNotInstalledError(PreflightError):
    pass


class AppTooOldError(PreflightError):
    def __init__(self, version: str, minimum: str):
        super().__init__(f"Version {version} is older than the minimum supported {minimum}")
        self.version = version
        self.minimum = minimum


class AppTamperedError(PreflightError):
    pass


class AppVersionParseError(PreflightError):
    pass


class PatchingStageError(PatchingError):
    """A stage failed. ``stage`` is where, ``cause`` is why."""

    def __init__(self, stage: PatchingStage, cause: Exception):
        super().__init__(f"Patching failed at {stage.value}: {cause}")
        self.stage = stage
        self.cause = cause


def preflight(app: InstalledApp | None, min_version: str) -> InstalledApp:
    """Check that ``app`` can be patched and return it.

    Raises:
        AppNotInstalledError, AppVersionParseError, AppTooOldError,
        AppTamperedError: one kind per remediation path.
    """
    if app is None:
        raise AppNotInstalledError("The app is not installed")

    try:
        version = app.semver
    except VersionParseFailure as e:
        raise AppVersionParseError(f"Cannot parse app version {app.version!r}") from e

    if version < parse_version(min_version):
        raise AppTooOldError(app.version, min_version)

    if app.tampered:
        raise AppTamperedError(f"{app.package_id} appears to be a modified copy")

    return app


# ── Pipeline ────────────────────────────────────────────────────

StageCallback = Callable[[PatchingStage], None]


class PatchingPipeline:
    """One patch run for one installed app. Not reusable."""

    def __init__(
        self,
        app: InstalledApp,
        device: DeviceBridge,
        toolchain: Toolchain,
        work_dir: Path,
        on_stage: StageCallback | None = None,
    ):
        self._app = app
        self._device = device
        self._toolchain = toolchain
        self._work_dir = work_dir
        self._on_stage = on_stage
        self._stage = PatchingStage.NOT_STARTED
        self._failed_stage: PatchingStage | None = None

    @property
    def stage(self) -> PatchingStage:
        return self._stage

    @property
    def failed_stage(self) -> PatchingStage | None:
        return self._failed_stage

    def _enter(self, stage: PatchingStage) -> None:
        self._stage = stage
        progress = stage_progress(stage)
        if progress:
            logger.info("(%s) %s", progress, stage.value)
        if self._on_stage is not None:
            self._on_stage(stage)

    def run(self) -> InstalledApp:
        """Run every stage.

        Raises:
            PatchingError: If the pipeline already ran.
            PatchingStageError: If a stage failed.
        """
        if self._stage != PatchingStage.NOT_STARTED:
            raise PatchingError(f"Pipeline already ran (stage: {self._stage.value})")

        package_id = self._app.package_id
        original = self._work_dir / "original.apk"
        patched = self._work_dir / "patched.apk"
        signed = self._work_dir / "signed.apk"

        try:
            self._enter(PatchingStage.MOVING_TO_TEMP)
            shutil.rmtree(self._work_dir, ignore_errors=True)
            self._work_dir.mkdir(parents=True, exist_ok=True)
            self._device.pull_apk(package_id, original)

            self._enter(PatchingStage.PATCHING)
            patched = self._toolchain.patch(original, patched, package_id)

            self._enter(PatchingStage.SIGNING)
            signed = self._toolchain.sign(patched, signed, package_id)

            self._enter(PatchingStage.UNINSTALLING_ORIGINAL)
            self._device.uninstall_package(package_id)

            self._enter(PatchingStage.INSTALLING_MODDED)
            self._device.install_apk(signed)
        except (DeviceError, ToolchainError, OSError) as e:
            self._failed_stage = self._stage
            logger.error("Patching failed at %s: %s", self._stage.value, e)
            self._enter(PatchingStage.FAILED)
            raise PatchingStageError(self._failed_stage, e) from e
        except Exception as e:
            self._failed_stage = self._stage
            logger.exception("Unexpected error while patching at %s", self._stage.value)
            self._enter(PatchingStage.FAILED)
            raise PatchingStageError(self._failed_stage, e) from e

        self._app.is_modded = True
        self._enter(PatchingStage.SUCCEEDED)
        return self._app
