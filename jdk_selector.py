"""
jdk_selector.py
===============
Decides which JDK runs a JAR once the installations are filtered by version.

  0 matches   → NoMatchingVersion
  1 match     → that JDK, no questions asked
  2+ matches  → remembered choice for the JAR, else ask the chooser
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence

from java_manager import JavaInstallation, LauncherError
from settings_manager import SettingsManager

if TYPE_CHECKING:
    from jar_runner import LaunchRequest

logger = logging.getLogger(__name__)


class NoMatchingVersion(LauncherError):
    """No installed JDK has the requested major version."""

    def __init__(self, version: int, available: Sequence[int] = ()) -> None:
        self.version = version
        self.available = list(available)
        found = ", ".join(str(v) for v in self.available) or "none"
        super().__init__(f"No JDK found for version {version} (installed versions: {found})")


class SelectionCancelled(LauncherError):
    """The user dismissed the JDK chooser."""


@dataclass(frozen=True)
class Choice:
    """What the chooser returns: the JDK plus whether to remember it."""

    installation: JavaInstallation
    remember: bool = False


class JdkChooser(Protocol):
    def present(
        self, candidates: Sequence[JavaInstallation], jar_path: str
    ) -> Optional[Choice]:
        """Block until the user picks a JDK; None means cancelled."""
        ...


class JdkSelector:
    """
    Args:
        settings: Store holding remembered JDKs per JAR
        chooser:  Asked only when several JDKs match and none is remembered
    """

    def __init__(self, settings: SettingsManager, chooser: JdkChooser) -> None:
        self.settings = settings
        self.chooser = chooser

    def select(
        self,
        candidates: Sequence[JavaInstallation],
        request: "LaunchRequest",
        available_versions: Sequence[int] = (),
    ) -> JavaInstallation:
        """
        Pick the installation that runs ``request.jar_path``.

        Args:
            candidates:         Installations already filtered to request.version
            request:            The launch being prepared
            available_versions: Versions found on the machine, for the error text

        Raises:
            NoMatchingVersion:  candidates is empty
            SelectionCancelled: the chooser was dismissed
        """
        if not candidates:
            raise NoMatchingVersion(request.version, available_versions)

        if len(candidates) == 1:
            logger.debug("Single JDK for version %d: %s", request.version, candidates[0].path)
            return candidates[0]

        logger.info("Multiple JDKs found for version %d", request.version)

        remembered = self._remembered(request)
        if remembered is not None:
            return remembered

        ordered: List[JavaInstallation] = sorted(candidates)
        choice = self.chooser.present(ordered, request.jar_path)
        if choice is None:
            raise SelectionCancelled("JDK selection cancelled")

        logger.debug("Selected JDK: %s", choice.installation.describe())
        if choice.remember:
            self.settings.put(request.jar_path, choice.installation.path)
        return choice.installation

    def _remembered(self, request: "LaunchRequest") -> Optional[JavaInstallation]:
        path = self.settings.get(request.jar_path)
        if path is None:
            return None
        if not os.path.isfile(path):
            logger.warning(
                "Remembered JDK %s for %s no longer exists, asking again",
                path, request.jar_path,
            )
            self.settings.forget(request.jar_path)
            return None
        logger.info("Using remembered JDK %s for %s", path, request.jar_path)
        return JavaInstallation(version=request.version, path=path, vendor=None)
