"""
java_manager.py
===============
JDK discovery and identity extraction.

Capabilities:
  - Parse a JDK ``release`` file into a normalized (major version, vendor) pair
  - Normalize every historical JAVA_VERSION format (1.8.0_402, 9.0.1, 17.0.9, 21)
  - Scan platform install locations plus user-configured roots for JDK binaries
  - Keep the discovered installations for one run and filter them by version

Cross-platform notes:
  Windows  – Program Files (Java, Adoptium, Corretto, Zulu, ...), LOCALAPPDATA
  Linux    – /usr/lib/jvm, /usr/java, /opt/java, SDKMAN, ~/.jdks
  macOS    – /Library/Java/JavaVirtualMachines, Homebrew, SDKMAN, ~/.jdks
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass
from functools import total_ordering
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Constants
# ──────────────────────────────────────────────

RELEASE_FILE = "release"
VERSION_KEY = "JAVA_VERSION"
VENDOR_KEY = "IMPLEMENTOR"

# Path tokens: a binary counts only if its directory mentions a JDK and no JRE
JDK_MARKER = "jdk"
JRE_MARKER = "jre"

_LEGACY_PREFIX = "1."


# ──────────────────────────────────────────────
#  Errors
# ──────────────────────────────────────────────

class LauncherError(Exception):
    """Base class for every error the launcher reports."""


class MalformedMetadata(LauncherError):
    """A release file is missing JAVA_VERSION or holds an unusable value."""


class MetadataUnreadable(LauncherError):
    """A release file exists but reading it failed."""


# ──────────────────────────────────────────────
#  JavaInstallation Dataclass
# ──────────────────────────────────────────────

@total_ordering
@dataclass(frozen=True, eq=True)
class JavaInstallation:
    """One discovered JDK."""

    version: int                   # Major version (8, 11, 17, 21)
    path: str                      # Absolute path to bin/java(.exe)
    vendor: Optional[str] = None   # IMPLEMENTOR from the release file

    def sort_key(self) -> Tuple[int, int, str]:
        # Missing vendor sorts ahead of any vendor for the same version
        if self.vendor is None:
            return (self.version, 0, "")
        return (self.version, 1, self.vendor.casefold())

    def __lt__(self, other: "JavaInstallation") -> bool:
        if not isinstance(other, JavaInstallation):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    @property
    def home(self) -> str:
        """Return the installation root (``bin/java`` → ``bin`` → root)."""
        return str(Path(self.path).parent.parent)

    @property
    def vendor_label(self) -> str:
        return self.vendor or "unknown"

    def describe(self) -> str:
        return f"Java {self.version} ({self.vendor_label}) — {self.path}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "path": self.path,
            "vendor": self.vendor,
            "home": self.home,
        }


# ──────────────────────────────────────────────
#  Release File Parsing
# ──────────────────────────────────────────────

def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value.strip("\"")


def parse_release_file(text: str) -> Dict[str, str]:
    """
    Parse the ``KEY=value`` lines of a JDK release file.

    Blank lines, ``#``/``!`` comments and lines without ``=`` are ignored.
    Surrounding quotes are removed from values.
    """
    properties: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#!":
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key:
            properties[key] = _strip_quotes(value)
    return properties


def normalize_major_version(raw: str) -> int:
    """
    Reduce a JAVA_VERSION string to its major version.

    Handles:
        "1.8.0_402" → 8    (legacy 1.X scheme)
        "9.0.1"     → 9    (single-digit 9 before the two-digit majors)
        "17.0.9"    → 17
        "21"        → 21

    Raises:
        MalformedMetadata: when no positive major version can be derived
    """
    version = _strip_quotes(raw or "")

    if version.startswith(_LEGACY_PREFIX):
        rest = version[len(_LEGACY_PREFIX):]
        if not rest or not rest[0].isdigit():
            raise MalformedMetadata(f"Unrecognised legacy version string: {raw!r}")
        major = int(rest[0])
    else:
        digits = "".join(ch for ch in version if ch.isdigit())
        if not digits:
            raise MalformedMetadata(f"No digits in version string: {raw!r}")
        if digits.startswith("9"):
            major = 9
        else:
            major = int(digits[:2])

    if major <= 0:
        raise MalformedMetadata(f"Version string {raw!r} gives major version {major}")
    return major


def parse_version_identity(text: str) -> Tuple[int, Optional[str]]:
    """
    Extract ``(major_version, vendor)`` from release file content.

    The vendor is optional: a missing or blank IMPLEMENTOR gives None.
    """
    properties = parse_release_file(text)
    raw_version = properties.get(VERSION_KEY)
    if raw_version is None:
        raise MalformedMetadata(f"{VERSION_KEY} not present")

    major = normalize_major_version(raw_version)

    vendor = properties.get(VENDOR_KEY)
    if vendor is not None:
        vendor = vendor.strip() or None
    return major, vendor


# ──────────────────────────────────────────────
#  JavaScanner
# ──────────────────────────────────────────────

class JavaScanner:
    """
    Walks candidate root directories and builds a JavaInstallation for every
    JDK interpreter binary found beneath them.

    Args:
        extra_roots: User-configured locations scanned after the platform ones
        system:      platform.system() override (Windows | Linux | Darwin)
    """

    def __init__(
        self,
        extra_roots: Iterable[str | Path] = (),
        system: Optional[str] = None,
    ) -> None:
        self.extra_roots = [str(r) for r in extra_roots]
        self._system = system or platform.system()
        self._machine = platform.machine()

    # ================================================================
    #  ROOTS
    # ================================================================

    @property
    def binary_name(self) -> str:
        return "java.exe" if self._system == "Windows" else "java"

    def default_roots(self) -> List[str]:
        """Return the usual JDK install directories for the current OS."""
        dirs: List[str] = []

        if self._system == "Windows":
            program_files = (
                os.environ.get("ProgramW6432")
                or os.environ.get("ProgramFiles", r"C:\Program Files")
            )
            program_files_x86 = os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")
            for vendor_dir in (
                "Java", "Amazon Corretto", "Eclipse Adoptium", "Eclipse Foundation",
                "AdoptOpenJDK", "Microsoft", "Zulu", "BellSoft", "ojdkbuild",
            ):
                dirs.append(os.path.join(program_files, vendor_dir))
            dirs.append(os.path.join(program_files_x86, "Java"))
            local_app_data = os.environ.get("LOCALAPPDATA")
            if local_app_data:
                dirs.append(os.path.join(local_app_data, "Programs", "Eclipse Adoptium"))
                dirs.append(os.path.join(local_app_data, "Programs", "Microsoft"))
            dirs.append(os.path.join(os.path.expanduser("~"), ".jdks"))

        elif self._system == "Darwin":
            dirs.extend([
                "/Library/Java/JavaVirtualMachines",
                os.path.expanduser("~/Library/Java/JavaVirtualMachines"),
                os.path.expanduser("~/.sdkman/candidates/java"),
                os.path.expanduser("~/.jdks"),
            ])
            brew_prefix = "/opt/homebrew" if self._machine == "arm64" else "/usr/local"
            # opt/openjdk@N are symlinks, which os.walk does not follow
            dirs.append(os.path.join(brew_prefix, "Cellar"))

        else:
            dirs.extend([
                "/usr/lib/jvm",
                "/usr/java",
                "/opt/java",
                "/opt/jdk",
                os.path.expanduser("~/.sdkman/candidates/java"),
                os.path.expanduser("~/.jdks"),
            ])

        return dirs

    def roots(self) -> List[str]:
        """Platform roots followed by extra roots, without repeats."""
        ordered: List[str] = []
        seen: set = set()
        for root in self.default_roots() + self.extra_roots:
            key = os.path.normcase(os.path.normpath(os.path.abspath(root)))
            if key not in seen:
                seen.add(key)
                ordered.append(root)
        return ordered

    # ================================================================
    #  SCANNING
    # ================================================================

    def scan(self, roots: Optional[Sequence[str | Path]] = None) -> List[JavaInstallation]:
        """
        Find every JDK below the given roots (default: ``self.roots()``).

        Missing roots are skipped silently; installations with a missing,
        unreadable or malformed release file are skipped with a warning.
        Identical installations reachable from overlapping roots are kept.
        """
        found: List[JavaInstallation] = []
        for root in (self.roots() if roots is None else roots):
            found.extend(self.scan_root(root))

        logger.info("Total detected: %d JDK installations", len(found))
        return found

    def scan_root(self, root: str | Path) -> Iterator[JavaInstallation]:
        root = str(root)
        if not os.path.isdir(root):
            logger.debug("Skipping missing root %s", root)
            return

        def _on_walk_error(exc: OSError) -> None:
            logger.debug("Cannot list %s: %s", exc.filename, exc)

        for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_walk_error):
            for name in filenames:
                binary = os.path.join(dirpath, name)
                if not self.is_jdk_binary(binary):
                    continue
                installation = self.load_installation(binary)
                if installation is not None:
                    logger.debug(
                        "Detected Java %d (%s) at %s",
                        installation.version, installation.vendor_label, installation.path,
                    )
                    yield installation

    def is_jdk_binary(self, path: str | Path) -> bool:
        """Interpreter binary inside a JDK (not JRE) directory."""
        path = str(path)
        name = os.path.basename(path)
        if self._system == "Windows":
            if name.lower() != self.binary_name:
                return False
        elif name != self.binary_name:
            return False

        parent = os.path.dirname(os.path.abspath(path)).lower()
        if JDK_MARKER not in parent or JRE_MARKER in parent:
            return False
        return os.path.isfile(path)

    def load_installation(self, binary: str | Path) -> Optional[JavaInstallation]:
        """Build the installation for a binary, or None if it must be skipped."""
        binary_path = os.path.abspath(str(binary))
        release_path = Path(binary_path).parent.parent / RELEASE_FILE

        if not release_path.is_file():
            logger.warning("No release file for JDK at %s, skipping", binary_path)
            return None

        try:
            text = self.read_release_file(release_path)
            version, vendor = parse_version_identity(text)
        except MetadataUnreadable as exc:
            logger.warning("Skipping JDK at %s: %s", binary_path, exc)
            return None
        except MalformedMetadata as exc:
            logger.warning("Skipping JDK at %s: bad release file (%s)", binary_path, exc)
            return None

        return JavaInstallation(version=version, path=binary_path, vendor=vendor)

    @staticmethod
    def read_release_file(release_path: Path) -> str:
        try:
            return release_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise MetadataUnreadable(f"cannot read {release_path}: {exc}") from exc


# ──────────────────────────────────────────────
#  JavaRegistry
# ──────────────────────────────────────────────

class JavaRegistry:
    """The installations discovered during one run."""

    def __init__(self, installations: Iterable[JavaInstallation] = ()) -> None:
        self.installations: List[JavaInstallation] = list(installations)

    def __len__(self) -> int:
        return len(self.installations)

    def __iter__(self) -> Iterator[JavaInstallation]:
        return iter(self.installations)

    def sorted(self) -> List[JavaInstallation]:
        return sorted(self.installations)

    def for_version(self, version: int) -> List[JavaInstallation]:
        """Installations with the given major version, in display order."""
        return sorted(i for i in self.installations if i.version == version)

    def versions(self) -> List[int]:
        return sorted({i.version for i in self.installations})
