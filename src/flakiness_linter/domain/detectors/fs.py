"""Unmocked filesystem and process access."""

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.constants import FS_MODULES, GLOB_MODULES, PROCESS_MODULES
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import CallIdentity, Capability, DetectorContext, Finding
from flakiness_linter.domain.mocks import normalize_module

_FS_BASE_METHODS = (
    "readFile", "writeFile", "appendFile", "unlink", "mkdir", "mkdtemp", "rmdir", "rm", "readdir", "stat",
    "lstat", "exists", "access", "copyFile", "cp", "rename", "truncate", "chmod", "chown", "utimes",
    "symlink", "link", "readlink", "realpath", "open", "close", "read", "write", "opendir", "fstat",
)
FS_METHODS = frozenset(
    [*_FS_BASE_METHODS, *(f"{m}Sync" for m in _FS_BASE_METHODS),
     "createReadStream", "createWriteStream", "watch", "watchFile", "unwatchFile",
     # fs-extra
     "readJson", "readJsonSync", "writeJson", "writeJsonSync", "outputFile", "outputFileSync",
     "outputJson", "outputJsonSync", "copy", "copySync", "move", "moveSync", "remove", "removeSync",
     "emptyDir", "emptyDirSync", "ensureDir", "ensureDirSync", "ensureFile", "ensureFileSync",
     "mkdirp", "mkdirpSync", "mkdirs", "mkdirsSync", "pathExists", "pathExistsSync"]
)
CHILD_PROCESS_METHODS = frozenset({"exec", "execSync", "spawn", "spawnSync", "execFile", "execFileSync", "fork"})
TEMP_PREFIXES = ("/tmp/", "/var/tmp/", "/private/tmp/", "/private/var/folders/", "c:\\temp\\", "c:\\windows\\temp\\",
                 "c:/temp/", "c:/windows/temp/")
TMPDIR_MARKER = "\0tmpdir"
FIXTURE_MARKERS = ("__fixtures__", "/fixtures/")
PATH_JOINERS = frozenset({"join", "resolve", "normalize"})


class PathEvaluator:
    """Static view of a path argument: literal pieces, `path.join` parts and `os.tmpdir()` markers."""

    def __init__(self, detector: BaseDetector) -> None:
        self._detector = detector

    def parts(self, node: Node | None, depth: int = 0) -> list[str] | None:
        node = syntax.unwrap(node)
        if node is None or depth > 6:
            return None
        literal = syntax.literal_text(node)
        if literal is not None:
            return [literal]
        if node.type == syntax.IDENTIFIER:
            name = syntax.text(node)
            if name in ("__dirname", "__filename"):
                return [f"<{name}>"]
            binding = self._detector.source.bindings.lookup(name, node)
            if binding is not None and binding.kind == "const" and binding.imported is None:
                return self.parts(binding.init, depth + 1)
            return None
        if node.type == syntax.CALL:
            identity = self._detector.identity(node)
            if identity is None:
                return None
            if identity.method == "tmpdir" and identity.module_origin in ("os", "node:os"):
                return [TMPDIR_MARKER]
            if identity.method in PATH_JOINERS and identity.module_origin in ("path", "node:path"):
                joined: list[str] = []
                for arg in syntax.arguments(node):
                    piece = self.parts(arg, depth + 1)
                    joined.extend(piece if piece is not None else ["<dynamic>"])
                return joined
        if node.type == syntax.MEMBER and syntax.property_name(node) == "name":
            # tmp.dirSync().name / tmp.fileSync().name
            obj = syntax.member_object(node)
            if obj is not None and obj.type == syntax.CALL and syntax.simple_callee_name(obj) in ("dirSync", "fileSync"):
                return [TMPDIR_MARKER]
        return None

    @staticmethod
    def is_temp(parts: list[str]) -> bool:
        if TMPDIR_MARKER in parts:
            return True
        first = parts[0].lower() if parts else ""
        return first.startswith(TEMP_PREFIXES) or first in ("/tmp", "/var/tmp")

    @staticmethod
    def is_fixture(parts: list[str]) -> bool:
        joined = "/" + "/".join(parts) + "/"
        return any(marker in joined for marker in FIXTURE_MARKERS)

    @staticmethod
    def matches_prefix(parts: list[str], prefixes: tuple[str, ...]) -> bool:
        joined = "/".join(p.strip("/") if i else p.rstrip("/") for i, p in enumerate(parts))
        return any(joined.startswith(prefix) or parts[0].startswith(prefix) for prefix in prefixes)


class UnmockedFsDetector(BaseDetector):
    """Calls into fs, fs-extra, glob/rimraf and child_process that are not mocked."""

    detector_id = "no-unmocked-fs"
    code = "FT003"
    capability = Capability.ACCESS
    node_kinds = frozenset({syntax.CALL})
    description = "Disallow unmocked filesystem and process access in tests."
    option_schema = {
        "allowedPaths": OptionSpec(STRING_LIST, []),
        "allowInSetup": OptionSpec(BOOL, False),
        "allowTempFiles": OptionSpec(BOOL, True),
        "allowedModules": OptionSpec(STRING_LIST, []),
        "mockModules": OptionSpec(STRING_LIST, ["fs", "fs/promises", "node:fs"]),
    }
    messages = {
        "mockFs": "Mock the filesystem before '{{method}}' in setup hooks (jest.mock('fs') or mock-fs).",
        "unmockedFs": "Unmocked filesystem call '{{method}}'; mock fs or use an in-memory filesystem.",
        "useMemfs": "Use memfs or mock-fs instead of the real filesystem call '{{method}}'.",
        "avoidRealFs": "Avoid spawning real processes in tests; mock child_process.",
        "needsMock": "File globbing touches the real filesystem; mock the glob module.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        identity = self.identity(node)
        if identity is None or identity.module_origin is None:
            return []
        module = normalize_module(identity.module_origin)
        family = self._family(identity, module)
        if family is None:
            return []
        if context.inside_mocked_block or self._mocked_by_option(module, family, options):
            return []
        allowed_modules = options["allowedModules"]
        if module in allowed_modules or identity.module_origin in allowed_modules:
            return []
        allowed_paths = tuple(options["allowedPaths"])
        parts = PathEvaluator(self).parts(syntax.argument(node, 0))
        if parts:
            if PathEvaluator.is_fixture(parts):
                return []
            if options["allowTempFiles"] and PathEvaluator.is_temp(parts):
                return []
            if allowed_paths and PathEvaluator.matches_prefix(parts, allowed_paths):
                return []
        restricted = bool(allowed_paths) or bool(allowed_modules)
        if self.setup_allowed(context, options) and not restricted:
            return []
        method = identity.method
        if family == "process":
            return [self.finding(node, "avoidRealFs", {"method": method})]
        if family == "glob":
            return [self.finding(node, "needsMock", {"method": method})]
        if module in ("fs-extra", "graceful-fs"):
            return [self.finding(node, "useMemfs", {"method": method})]
        if context.inside_setup_hook:
            return [self.finding(node, "mockFs", {"method": method})]
        return [self.finding(node, "unmockedFs", {"method": method})]

    def _family(self, identity: CallIdentity, module: str) -> str | None:
        if module in {normalize_module(m) for m in FS_MODULES}:
            return "fs" if identity.method in FS_METHODS else None
        if module in GLOB_MODULES:
            return "glob"
        if module in {normalize_module(m) for m in PROCESS_MODULES}:
            if module == "child_process":
                return "process" if identity.method in CHILD_PROCESS_METHODS else None
            return "process"
        return None

    def _mocked_by_option(self, module: str, family: str, options: RuleOptions) -> bool:
        """Any module named in `mockModules` being mocked covers the whole fs family."""
        if family != "fs":
            return False
        mocks = self.source.mocks
        return any(mocks.is_module_mocked(m) for m in options["mockModules"]) and (
            module in {normalize_module(m) for m in options["mockModules"]} or mocks.has_library("mock-fs", "memfs")
        )
