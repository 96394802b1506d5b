"""Shared names used across the detector catalog. Pure data; no behavior."""

PLUGIN_PREFIX = "test-flakiness/"
TOOL_SECTION = "flakiness-linter"

FLAKINESS_BANNER = r"""
  _____ _       _    _
 |  ___| | __ _| | _(_)_ __   ___  ___ ___
 | |_  | |/ _` | |/ / | '_ \ / _ \/ __/ __|
 |  _| | | (_| |   <| | | | |  __/\__ \__ \
 |_|   |_|\__,_|_|\_\_|_| |_|\___||___/___/
"""

JS_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs")
TS_EXTENSIONS = (".ts", ".mts", ".cts")
TSX_EXTENSIONS = (".tsx",)
SOURCE_EXTENSIONS = JS_EXTENSIONS + TS_EXTENSIONS + TSX_EXTENSIONS

DEFAULT_EXCLUDES = ("node_modules", ".git", "dist", "build", "coverage")

MAX_FIX_PASSES = 10

TEST_FUNCTIONS = frozenset({"it", "test", "specify", "fit", "ftest", "xit", "xtest", "Scenario"})
DESCRIBE_FUNCTIONS = frozenset({"describe", "suite", "context", "fdescribe", "xdescribe", "Feature"})
SETUP_HOOKS = frozenset({"beforeEach", "beforeAll", "before", "setup", "suiteSetup"})
TEARDOWN_HOOKS = frozenset({"afterEach", "afterAll", "after", "teardown", "suiteTeardown"})
HOOK_FUNCTIONS = SETUP_HOOKS | TEARDOWN_HOOKS
TEST_MODIFIERS = frozenset({"only", "skip", "todo", "each", "concurrent", "failing", "fixme", "serial", "parallel"})

# Unbound names conventionally bound to a module in test files.
CONVENTIONAL_MODULES = {
    "fs": "fs",
    "fse": "fs-extra",
    "fsExtra": "fs-extra",
    "child_process": "child_process",
    "glob": "glob",
    "fg": "fast-glob",
    "rimraf": "rimraf",
    "path": "path",
    "os": "os",
}

FS_MODULES = frozenset({
    "fs", "node:fs", "fs/promises", "node:fs/promises", "fs-extra", "graceful-fs",
})
PROCESS_MODULES = frozenset({"child_process", "node:child_process", "execa", "shelljs"})
GLOB_MODULES = frozenset({"glob", "fast-glob", "globby", "rimraf", "del"})

MOCK_DIRECTIVE_METHODS = frozenset({"mock", "doMock", "unstable_mockModule", "setMock"})
MOCK_NAMESPACES = frozenset({"jest", "vi"})
MOCK_LIBRARIES = {
    "mock-fs": ("fs", "fs/promises", "node:fs", "node:fs/promises", "fs-extra"),
    "memfs": ("fs", "fs/promises", "node:fs", "node:fs/promises", "fs-extra"),
    "nock": ("http", "https", "fetch", "axios", "request", "node-fetch", "got", "superagent"),
    "fetch-mock": ("fetch", "node-fetch"),
    "jest-fetch-mock": ("fetch", "node-fetch"),
    "msw": ("fetch", "http", "https", "axios", "node-fetch", "XMLHttpRequest"),
    "msw/node": ("fetch", "http", "https", "axios", "node-fetch", "XMLHttpRequest"),
    "axios-mock-adapter": ("axios",),
}
MOCK_FACTORY_CALLS = frozenset({
    "fn", "mockImplementation", "mockImplementationOnce", "mockResolvedValue",
    "mockResolvedValueOnce", "mockRejectedValue", "mockRejectedValueOnce",
    "mockReturnValue", "mockReturnValueOnce", "callsFake", "returns", "resolves",
})

ASSERTION_CALLEES = frozenset({"expect", "assert", "should", "expectTypeOf", "chai"})
POLLING_HELPERS = frozenset({
    "waitFor", "waitUntil", "waitForExpect", "waitForElement", "waitForElementToBeRemoved", "wait",
    "eventually", "poll", "toPass",
})
WAIT_FOR_IMPORT_SOURCE = "@testing-library/react"
