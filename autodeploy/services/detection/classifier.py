"""
Project type detection from workspace fingerprints.

Detection is ordered and first-match: the first manifest family present
decides the runtime, then the manifest's content picks the framework.
Manifest presence always wins over content of a later manifest, and the
framework-specific match wins over the generic one.
"""
import logging
import os
import re
from typing import Sequence, Tuple

from autodeploy.core.exceptions import ClassificationAmbiguity
from autodeploy.models.project_type import ProjectType

logger = logging.getLogger(__name__)


# (substring in package.json, optional marker file, type), most specific first
NODE_MARKERS: Sequence[Tuple[str, Tuple[str, ...], ProjectType]] = (
    ('"next"', ("next.config.js", "next.config.mjs"), ProjectType.NEXTJS),
    ('"@nestjs/core"', (), ProjectType.NESTJS),
    ('"nuxt"', (), ProjectType.NUXT),
    ('"vue"', ("vue.config.js",), ProjectType.VUE),
    ('"@angular/core"', (), ProjectType.ANGULAR),
    ('"svelte"', (), ProjectType.SVELTE),
    ('"gatsby"', (), ProjectType.GATSBY),
    ('"express"', (), ProjectType.EXPRESS),
    ('"koa"', (), ProjectType.KOA),
    ('"react"', (), ProjectType.REACT),
)

JVM_MARKERS: Sequence[Tuple[str, ProjectType]] = (
    ("spring-cloud", ProjectType.SPRING_CLOUD),
    ("micronaut", ProjectType.MICRONAUT),
    ("quarkus", ProjectType.QUARKUS),
)

PYTHON_MANIFESTS = ("requirements.txt", "Pipfile", "pyproject.toml")
GRADLE_MANIFESTS = ("build.gradle", "build.gradle.kts")
HUGO_CONFIGS = ("hugo.toml", "hugo.yaml", "config.toml")

# Every manifest that rules out plain static content
FRAMEWORK_MANIFESTS = (
    "package.json", "pom.xml", *GRADLE_MANIFESTS, *PYTHON_MANIFESTS,
    "go.mod", "Gemfile", "composer.json",
)

GIN_MODULE = "github.com/gin-gonic/gin"

PORT_PATTERNS = (
    # (relative file, regex with one digit group)
    ("package.json", re.compile(r"PORT=(\d{2,5})")),
    ("src/main/resources/application.properties", re.compile(r"^\s*server\.port\s*=\s*(\d{2,5})", re.M)),
    ("src/main/resources/application.yml", re.compile(r"^\s+port:\s*(\d{2,5})\s*$", re.M)),
    (".env", re.compile(r"^\s*PORT\s*=\s*(\d{2,5})\s*$", re.M)),
)


class TypeClassifier:
    """
    Classify a workspace into a ProjectType and resolve its listening port.

    Never raises: anything it cannot decide resolves to UNKNOWN or to the
    type's default port.
    """

    def classify(self, workspace_path: str) -> ProjectType:
        """
        Detect the project type of a checked-out repository.

        Args:
            workspace_path: Path to the workspace

        Returns:
            Detected ProjectType, UNKNOWN when nothing matches
        """
        try:
            project_type, reason = self._detect(workspace_path)
        except ClassificationAmbiguity as e:
            logger.warning(e.message)
            return ProjectType.UNKNOWN

        if project_type is ProjectType.UNKNOWN:
            logger.warning(f"Could not detect project type for {workspace_path}")
        else:
            logger.info(f"Detected {project_type.display_name} project ({reason})")
        return project_type

    def _detect(self, root: str) -> Tuple[ProjectType, str]:
        if not os.path.isdir(root):
            raise ClassificationAmbiguity(root, "workspace is not a directory")

        if self._exists(root, "package.json"):
            return self._detect_node(root)

        if self._exists(root, "pom.xml"):
            return self._detect_jvm(root, "pom.xml")

        for manifest in GRADLE_MANIFESTS:
            if self._exists(root, manifest):
                return self._detect_jvm(root, manifest)

        for manifest in PYTHON_MANIFESTS:
            if self._exists(root, manifest):
                return self._detect_python(root)

        if self._exists(root, "go.mod"):
            go_mod = self._read(root, "go.mod")
            if GIN_MODULE in go_mod:
                return ProjectType.GIN, f"go.mod requires {GIN_MODULE}"
            return ProjectType.GO, "go.mod"

        if self._exists(root, "Gemfile"):
            return self._detect_ruby(root)

        if self._exists(root, "composer.json"):
            return ProjectType.LARAVEL, "composer.json"

        if any(self._exists(root, name) for name in HUGO_CONFIGS) and (
            self._exists(root, "content") or self._exists(root, "layouts")
        ):
            return ProjectType.HUGO, "hugo site config"

        if self._exists(root, "index.html") and not self._has_framework_files(root):
            return ProjectType.STATIC_HTML, "index.html without manifests"

        return ProjectType.UNKNOWN, "no markers"

    def _detect_node(self, root: str) -> Tuple[ProjectType, str]:
        package_json = self._read(root, "package.json")
        for needle, marker_files, project_type in NODE_MARKERS:
            if needle in package_json:
                return project_type, f"package.json mentions {needle}"
            for marker in marker_files:
                if self._exists(root, marker):
                    return project_type, f"found {marker}"
        # Generic Node backend
        return ProjectType.EXPRESS, "package.json without known framework"

    def _detect_jvm(self, root: str, manifest: str) -> Tuple[ProjectType, str]:
        content = self._read(root, manifest)
        for needle, project_type in JVM_MARKERS:
            if needle in content:
                return project_type, f"{manifest} mentions {needle}"
        return ProjectType.SPRING_BOOT, manifest

    def _detect_python(self, root: str) -> Tuple[ProjectType, str]:
        if self._exists(root, "manage.py"):
            return ProjectType.DJANGO, "manage.py"

        manifests = "\n".join(self._read(root, name) for name in PYTHON_MANIFESTS).lower()
        if "fastapi" in manifests:
            return ProjectType.FASTAPI, "dependency manifest lists fastapi"
        if "flask" in manifests:
            return ProjectType.FLASK, "dependency manifest lists flask"
        if "django" in manifests:
            return ProjectType.DJANGO, "dependency manifest lists django"
        return ProjectType.FLASK, "python manifest without known framework"

    def _detect_ruby(self, root: str) -> Tuple[ProjectType, str]:
        if self._exists(root, "config.ru") or self._exists(root, "config/application.rb"):
            return ProjectType.RAILS, "rack config"
        if self._exists(root, "_config.yml"):
            return ProjectType.JEKYLL, "_config.yml"
        return ProjectType.RAILS, "Gemfile"

    def detect_port(self, workspace_path: str, project_type: ProjectType) -> int:
        """
        Find an explicit port assignment in the project's config files.

        Args:
            workspace_path: Path to the workspace
            project_type: Type whose default applies when nothing is found

        Returns:
            Port number
        """
        for relative_path, pattern in PORT_PATTERNS:
            content = self._read(workspace_path, relative_path)
            if not content:
                continue
            match = pattern.search(content)
            if not match:
                continue
            port = int(match.group(1))
            if 1 <= port <= 65535:
                logger.info(f"Detected port {port} from {relative_path}")
                return port
        return project_type.default_port

    def _has_framework_files(self, root: str) -> bool:
        return any(self._exists(root, name) for name in FRAMEWORK_MANIFESTS)

    @staticmethod
    def _exists(root: str, relative_path: str) -> bool:
        return os.path.exists(os.path.join(root, relative_path))

    @staticmethod
    def _read(root: str, relative_path: str) -> str:
        """File content, or an empty string if it is missing or unreadable."""
        path = os.path.join(root, relative_path)
        if not os.path.isfile(path):
            return ""
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                return f.read()
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")
            return ""

