"""
Prompter — the questions core services need a human to answer.

Services never print or read input. When a decision belongs to the
user (remediate missing core mods? install a mod built for another app
version?) they ask a Prompter. The CLI supplies an interactive one;
tests and ``--yes`` runs supply ``AutoPrompter``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modpatcher.core.models.mod import CoreModEntry, Mod
    from modpatcher.core.services.file_copy import FileCopyDestination


class Prompter(ABC):
    """Answers yes/no and choice questions on behalf of the user."""

    @abstractmethod
    def confirm_install_core_mods(self, missing: list[CoreModEntry]) -> bool:
        """Install the listed missing core mods now?"""

    @abstractmethod
    def confirm_unsupported_version(self, app_version: str) -> bool:
        """No core mods exist for this version. Continue without them?"""

    @abstractmethod
    def confirm_version_mismatch(self, mod: Mod, app_version: str) -> bool:
        """The mod targets a different app version. Install it anyway?"""

    @abstractmethod
    def confirm_32bit_patch(self) -> bool:
        """The app is a 32-bit build. Patch it anyway?"""

    @abstractmethod
    def choose_file_copy(
        self, path: Path, candidates: list[FileCopyDestination]
    ) -> FileCopyDestination | None:
        """Pick a destination for a file several destinations accept.

        None means the user cancelled; the file is skipped.
        """


class AutoPrompter(Prompter):
    """Answers every confirmation with ``answer``.

    Choices are never made automatically: with more than one candidate
    destination the file is skipped.
    """

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.asked: list[str] = []

    def confirm_install_core_mods(self, missing: list[CoreModEntry]) -> bool:
        self.asked.append("install_core_mods")
        return self.answer

    def confirm_unsupported_version(self, app_version: str) -> bool:
        self.asked.append("unsupported_version")
        return self.answer

    def confirm_version_mismatch(self, mod: Mod, app_version: str) -> bool:
        self.asked.append("version_mismatch")
        return self.answer

    def confirm_32bit_patch(self) -> bool:
        self.asked.append("32bit_patch")
        return self.answer

    def choose_file_copy(
        self, path: Path, candidates: list[FileCopyDestination]
    ) -> FileCopyDestination | None:
        self.asked.append("file_copy")
        return None
