"""
File synthesizer for generated Go API projects.

Every artifact is described once in the ARTIFACTS table: where it lives
for each structure, which package it declares, when it is emitted, and
how its content is assembled from predicate-gated fragments. Path,
package name and gating are derived from the same FeatureSelection for
all artifacts, so the files always agree with each other.

Guarantees:
- Output is a pure function of (selection, versions, owner)
- Library-gated fragments follow catalog order, not request order
- A library that is not selected leaves no import or reference behind
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Optional, Union

from starter.core.catalog import DEFAULT_OWNER, resolve_versions
from starter.core.selection import Database, Deployment, FeatureSelection

logger = logging.getLogger(__name__)


@dataclass
class GeneratedFile:
    """A single generated file."""
    path: str
    content: str

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8"))


@dataclass
class ProjectTree:
    """All generated files of one project, keyed by relative path."""
    files: list[GeneratedFile] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    @property
    def total_bytes(self) -> int:
        return sum(f.size for f in self.files)

    def get(self, path: str) -> Optional[GeneratedFile]:
        for f in self.files:
            if f.path == path:
                return f
        return None

    def as_dict(self) -> dict[str, str]:
        return {f.path: f.content for f in self.files}


class SynthesisError(Exception):
    """Error while planning or writing a project tree."""
    pass


# =============================================================================
# Rule building blocks
# =============================================================================

Predicate = Callable[[FeatureSelection], bool]


def always(selection: FeatureSelection) -> bool:
    return True


def has_database(selection: FeatureSelection) -> bool:
    return selection.has_database


def uses(library: str) -> Predicate:
    """Predicate: library is selected."""
    def predicate(selection: FeatureSelection) -> bool:
        return selection.has_library(library)
    predicate.__name__ = f"uses_{library.replace('-', '_')}"
    return predicate


def lacks(library: str) -> Predicate:
    """Predicate: library is not selected."""
    def predicate(selection: FeatureSelection) -> bool:
        return not selection.has_library(library)
    predicate.__name__ = f"lacks_{library.replace('-', '_')}"
    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    def predicate(selection: FeatureSelection) -> bool:
        return all(p(selection) for p in predicates)
    return predicate


def deploys_to(target: Deployment) -> Predicate:
    def predicate(selection: FeatureSelection) -> bool:
        return selection.deployment is target
    return predicate


# Migrations only run against a configured database
runs_migrations = all_of(uses("go-migration"), has_database)


@dataclass(frozen=True)
class Placement:
    """Where an artifact lives and which package it declares, per structure."""
    simple_path: str
    standard_path: str
    simple_package: str = "main"
    standard_package: Optional[str] = None

    def path(self, selection: FeatureSelection) -> str:
        return self.standard_path if selection.is_standard else self.simple_path

    def package(self, selection: FeatureSelection) -> str:
        if not selection.is_standard:
            return self.simple_package
        if self.standard_package:
            return self.standard_package
        # Layered files take their directory name
        return Path(self.standard_path).parent.name or self.simple_package


@dataclass(frozen=True)
class RenderContext:
    """Everything a renderer may read. Never mutated."""
    selection: FeatureSelection
    versions: Mapping[str, str]
    owner: str
    package: str

    def library_import(self, library: str) -> str:
        return f"github.com/{self.owner}/{library}"


Text = Union[str, Callable[[RenderContext], str]]


@dataclass(frozen=True)
class Fragment:
    """A piece of content emitted only when its predicate holds."""
    when: Predicate
    text: Text

    def render(self, ctx: RenderContext) -> str:
        if not self.when(ctx.selection):
            return ""
        return self.text(ctx) if callable(self.text) else self.text


def render_fragments(fragments: tuple[Fragment, ...], ctx: RenderContext) -> str:
    return "".join(f.render(ctx) for f in fragments)


def collect(fragments: tuple[Fragment, ...], ctx: RenderContext) -> list[str]:
    """Rendered values of the fragments whose predicate holds."""
    return [f.render(ctx) for f in fragments if f.when(ctx.selection)]


def render_go_imports(imports: list[str]) -> str:
    if len(imports) == 1:
        return f"import {imports[0]}\n\n"
    body = "".join(f"\t{imp}\n" for imp in imports)
    return f"import (\n{body})\n\n"


def run_command(selection: FeatureSelection) -> str:
    """Start command for the generated entrypoint."""
    if selection.is_standard:
        return "go run cmd/server/main.go"
    return "go run main.go"


# =============================================================================
# Settings shared by the config loader and the env files
# =============================================================================

@dataclass(frozen=True)
class Setting:
    """One environment-backed setting of the generated service."""
    field: str
    env: str
    default: Text
    example: Text
    when: Predicate = always


SETTINGS: tuple[Setting, ...] = (
    Setting("AppName", "APP_NAME",
            default=lambda ctx: ctx.selection.name,
            example=lambda ctx: ctx.selection.name),
    Setting("Port", "PORT", default="8080", example="8080"),
    Setting("DatabaseURL", "DATABASE_URL", default="", example="", when=has_database),
    Setting("JWTSecret", "JWT_SECRET", default="", example="your-secret-key", when=uses("go-auth")),
    Setting("LogLevel", "LOG_LEVEL", default="info", example="info", when=uses("go-logger")),
)


def active_settings(selection: FeatureSelection) -> list[Setting]:
    return [s for s in SETTINGS if s.when(selection)]


def _value(text: Text, ctx: RenderContext) -> str:
    return text(ctx) if callable(text) else text


# =============================================================================
# Module descriptor (go.mod)
# =============================================================================

GO_VERSION = "1.21"
GIN_REQUIREMENT = "github.com/gin-gonic/gin v1.9.1"

DRIVER_REQUIREMENTS: dict[Database, tuple[str, ...]] = {
    Database.POSTGRES: (
        "github.com/lib/pq v1.10.9",
        "gorm.io/driver/postgres v1.5.7",
        "gorm.io/gorm v1.25.9",
    ),
    Database.MYSQL: (
        "gorm.io/driver/mysql v1.5.6",
        "gorm.io/gorm v1.25.9",
    ),
    Database.MONGODB: (
        "go.mongodb.org/mongo-driver v1.14.0",
    ),
    Database.NONE: (),
}


def render_module_descriptor(ctx: RenderContext) -> str:
    sel = ctx.selection
    requirements = [GIN_REQUIREMENT]
    requirements.extend(
        f"{ctx.library_import(lib)} {ctx.versions[lib]}" for lib in sel.ordered_libraries()
    )
    requirements.extend(DRIVER_REQUIREMENTS[sel.database])

    content = f"module {sel.module_path}\n\ngo {GO_VERSION}\n\nrequire (\n"
    content += "".join(f"\t{req}\n" for req in requirements)
    content += ")\n"
    return content


# =============================================================================
# Entrypoint (main.go)
# =============================================================================

ENTRYPOINT_IMPORTS: tuple[Fragment, ...] = (
    Fragment(always, '"log"'),
    Fragment(always, '"github.com/gin-gonic/gin"'),
    Fragment(always, lambda ctx: f'"{ctx.selection.module_path}/config"'),
    Fragment(runs_migrations, lambda ctx: f'"{ctx.library_import("go-migration")}"'),
    Fragment(uses("go-logger"), lambda ctx: f'"{ctx.library_import("go-logger")}"'),
    Fragment(uses("go-metrics"), lambda ctx: f'"{ctx.library_import("go-metrics")}"'),
)

ENTRYPOINT_BODY: tuple[Fragment, ...] = (
    Fragment(always, "func main() {\n\tcfg := config.Load()\n\n"),
    Fragment(uses("go-logger"),
             "\tlogger.Init(logger.Config{\n"
             "\t\tLevel: cfg.LogLevel,\n"
             "\t})\n"
             "\tdefer logger.Sync()\n\n"),
    Fragment(runs_migrations,
             "\tif err := migration.Up(cfg.DatabaseURL, \"./migrations\"); err != nil {\n"
             "\t\tlog.Fatal(err)\n"
             "\t}\n\n"),
    Fragment(uses("go-metrics"),
             "\tmetricsCollector := metrics.NewMetrics(metrics.Config{\n"
             "\t\tNamespace: cfg.AppName,\n"
             "\t})\n\n"),
    Fragment(always, "\trouter := gin.Default()\n\n"),
    Fragment(uses("go-metrics"), "\trouter.Use(metricsCollector.Middleware())\n\n"),
    Fragment(always,
             "\trouter.GET(\"/health\", func(c *gin.Context) {\n"
             "\t\tc.JSON(200, gin.H{\"status\": \"ok\"})\n"
             "\t})\n\n"),
    Fragment(uses("go-metrics"), "\trouter.GET(\"/metrics\", metricsCollector.Handler())\n\n"),
    Fragment(always,
             "\tapi := router.Group(\"/api/v1\")\n"
             "\t{\n"
             "\t\tapi.GET(\"/users\", func(c *gin.Context) {\n"
             "\t\t\tc.JSON(200, gin.H{\"users\": []string{}})\n"
             "\t\t})\n"
             "\t}\n\n"
             "\tport := cfg.Port\n"
             "\tif port == \"\" {\n"
             "\t\tport = \"8080\"\n"
             "\t}\n\n"
             "\tlog.Printf(\"Starting server on port %s\", port)\n"
             "\tif err := router.Run(\":\" + port); err != nil {\n"
             "\t\tlog.Fatal(err)\n"
             "\t}\n"
             "}\n"),
)


def render_entrypoint(ctx: RenderContext) -> str:
    content = f"package {ctx.package}\n\n"
    content += render_go_imports(collect(ENTRYPOINT_IMPORTS, ctx))
    content += render_fragments(ENTRYPOINT_BODY, ctx)
    return content


# =============================================================================
# Config loader (config/config.go)
# =============================================================================

def render_config_loader(ctx: RenderContext) -> str:
    settings = active_settings(ctx.selection)

    content = f"package {ctx.package}\n\n"
    content += render_go_imports(['"os"'])
    content += "type Config struct {\n"
    content += "".join(f"\t{s.field} string\n" for s in settings)
    content += "}\n\n"

    content += "func Load() *Config {\n\treturn &Config{\n"
    content += "".join(
        f"\t\t{s.field}: getEnv(\"{s.env}\", \"{_value(s.default, ctx)}\"),\n" for s in settings
    )
    content += "\t}\n}\n\n"

    content += (
        "func getEnv(key, def string) string {\n"
        "\tif v := os.Getenv(key); v != \"\" {\n"
        "\t\treturn v\n"
        "\t}\n"
        "\treturn def\n"
        "}\n"
    )
    return content


# =============================================================================
# Request handlers
# =============================================================================

HANDLER_IMPORTS: tuple[Fragment, ...] = (
    Fragment(always, '"github.com/gin-gonic/gin"'),
    Fragment(uses("go-response"), lambda ctx: f'"{ctx.library_import("go-response")}"'),
)

HANDLER_BODY: tuple[Fragment, ...] = (
    Fragment(always, "func GetUsers(c *gin.Context) {\n"),
    Fragment(uses("go-response"), "\tresponse.Success(c, []string{})\n"),
    Fragment(lacks("go-response"), "\tc.JSON(200, gin.H{\"users\": []string{}})\n"),
    Fragment(always, "}\n"),
)


def render_handlers(ctx: RenderContext) -> str:
    content = f"package {ctx.package}\n\n"
    content += render_go_imports(collect(HANDLER_IMPORTS, ctx))
    content += render_fragments(HANDLER_BODY, ctx)
    return content


# =============================================================================
# Auth middleware
# =============================================================================

def render_auth_middleware(ctx: RenderContext) -> str:
    content = f"package {ctx.package}\n\n"
    content += render_go_imports([
        '"github.com/gin-gonic/gin"',
        f'"{ctx.library_import("go-auth")}"',
    ])
    content += (
        "func AuthMiddleware() gin.HandlerFunc {\n"
        "\treturn func(c *gin.Context) {\n"
        "\t\ttoken := c.GetHeader(\"Authorization\")\n"
        "\t\tif token == \"\" {\n"
        "\t\t\tc.JSON(401, gin.H{\"error\": \"unauthorized\"})\n"
        "\t\t\tc.Abort()\n"
        "\t\t\treturn\n"
        "\t\t}\n\n"
        "\t\tif _, err := auth.ValidateToken(token); err != nil {\n"
        "\t\t\tc.JSON(401, gin.H{\"error\": \"invalid token\"})\n"
        "\t\t\tc.Abort()\n"
        "\t\t\treturn\n"
        "\t\t}\n\n"
        "\t\tc.Next()\n"
        "\t}\n"
        "}\n"
    )
    return content


# =============================================================================
# Environment files, ignore file, deployment descriptor
# =============================================================================

def render_env_file(ctx: RenderContext) -> str:
    return "".join(
        f"{s.env}={_value(s.example, ctx)}\n" for s in active_settings(ctx.selection)
    )


GITIGNORE = """*.exe
*.dll
*.so
*.dylib
*.test
*.out
vendor/
.env
.DS_Store
tmp/
temp/
"""


def render_gitignore(ctx: RenderContext) -> str:
    return GITIGNORE


def render_deployment_descriptor(ctx: RenderContext) -> str:
    return f'''{{
  "$schema": "https://railway.app/railway.schema.json",
  "build": {{
    "builder": "NIXPACKS"
  }},
  "deploy": {{
    "startCommand": "{run_command(ctx.selection)}",
    "restartPolicyType": "ON_FAILURE",
    "restartPolicyMaxRetries": 10
  }}
}}
'''


# =============================================================================
# README
# =============================================================================

README_ENDPOINTS: tuple[Fragment, ...] = (
    Fragment(always, "- `GET /health` - Health check\n"),
    Fragment(uses("go-metrics"), "- `GET /metrics` - Prometheus metrics\n"),
    Fragment(always, "- `GET /api/v1/users` - Get users\n"),
)

README_DEPLOYMENT = (
    "## Deployment\n\n"
    "This project is ready for Railway deployment.\n\n"
    "1. Push to GitHub\n"
    "2. Connect to Railway\n"
    "3. Deploy!\n"
)


def render_readme(ctx: RenderContext) -> str:
    sel = ctx.selection
    content = f"# {sel.name}\n\n"
    content += "A Go API generated with go-starter.\n\n"
    content += "## Features\n\n"
    content += "".join(
        f"- {lib.removeprefix('go-')}\n" for lib in sel.ordered_libraries()
    )

    content += "\n## Getting Started\n\n"
    content += "```bash\n"
    content += "go mod tidy\n"
    content += "cp .env.example .env\n"
    content += f"{run_command(sel)}\n"
    content += "```\n\n"

    content += "## API Endpoints\n\n"
    content += render_fragments(README_ENDPOINTS, ctx)
    content += "\n"

    if sel.deployment is Deployment.RAILWAY:
        content += README_DEPLOYMENT
    return content


# =============================================================================
# Artifact table
# =============================================================================

@dataclass(frozen=True)
class Artifact:
    """One generated file: placement, inclusion rule, and renderer."""
    name: str
    placement: Placement
    render: Callable[[RenderContext], str]
    include: Predicate = always


def _root(path: str) -> Placement:
    return Placement(path, path)


ARTIFACTS: tuple[Artifact, ...] = (
    Artifact("module_descriptor", _root("go.mod"), render_module_descriptor),
    Artifact("entrypoint",
             Placement("main.go", "cmd/server/main.go", standard_package="main"),
             render_entrypoint),
    Artifact("config_loader",
             Placement("config/config.go", "config/config.go", "config", "config"),
             render_config_loader),
    Artifact("handlers",
             Placement("handlers.go", "internal/handlers/handlers.go"),
             render_handlers),
    Artifact("auth_middleware",
             Placement("middleware.go", "internal/middleware/auth.go"),
             render_auth_middleware,
             include=uses("go-auth")),
    Artifact("env_file", _root(".env"), render_env_file),
    Artifact("env_example", _root(".env.example"), render_env_file),
    Artifact("ignore_file", _root(".gitignore"), render_gitignore),
    Artifact("deployment_descriptor", _root("railway.json"), render_deployment_descriptor,
             include=deploys_to(Deployment.RAILWAY)),
    Artifact("readme", _root("README.md"), render_readme),
)


def synthesize(
    selection: FeatureSelection,
    versions: Optional[Mapping[str, str]] = None,
    owner: str = DEFAULT_OWNER,
) -> ProjectTree:
    """
    Render every applicable artifact for a selection.

    Args:
        selection: Normalized feature selection
        versions: Fetched library versions; missing ids use catalog defaults
        owner: GitHub owner of the go-* add-on packages

    Returns:
        ProjectTree with one GeneratedFile per emitted artifact
    """
    resolved = resolve_versions(versions)
    tree = ProjectTree()
    seen: set[str] = set()

    for artifact in ARTIFACTS:
        if not artifact.include(selection):
            continue
        path = artifact.placement.path(selection)
        if path in seen:
            raise SynthesisError(f"Duplicate generated path: {path}")
        seen.add(path)

        ctx = RenderContext(
            selection=selection,
            versions=resolved,
            owner=owner,
            package=artifact.placement.package(selection),
        )
        tree.files.append(GeneratedFile(path=path, content=artifact.render(ctx)))

    logger.info(
        f"scaffold_synthesized project={selection.name} files={len(tree.files)} bytes={tree.total_bytes}"
    )
    return tree


def write_tree(root: Path, tree: ProjectTree) -> list[Path]:
    """
    Write every file of a tree under root.

    Directories must already exist (see planner.create_directories).

    Raises:
        SynthesisError: On the first write failure. Files already written
            are left in place.
    """
    written = []
    for f in tree.files:
        target = Path(root) / f.path
        try:
            target.write_bytes(f.content.encode("utf-8"))
        except OSError as e:
            logger.error(f"scaffold_write_failed path={f.path} error_type={type(e).__name__}")
            raise SynthesisError(f"Failed to write {f.path}: {e.strerror or e}") from e
        written.append(target)
    return written
