"""Nondeterministic data: random numbers, wall-clock time, generated ids and unseeded fakers."""

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.detectors.timing import uses_fake_timers
from flakiness_linter.domain.entities import CallIdentity, Capability, DetectorContext, Finding

CLOCK_CALLS = {("Date", "now"), ("performance", "now")}
CRYPTO_OWNERS = frozenset({"crypto", "window.crypto", "globalThis.crypto", "global.crypto", "self.crypto"})
CRYPTO_METHODS = frozenset({"getRandomValues", "randomBytes", "randomInt", "randomFill", "randomFillSync",
                            "pseudoRandomBytes"})
ID_MODULES = frozenset({"uuid", "nanoid", "short-uuid", "cuid", "@paralleldrive/cuid2", "ulid"})
FAKER_LIBRARIES = {
    "faker": "faker",
    "chance": "chance",
    "casual": "casual",
}
FAKER_MODULES = {
    "@faker-js/faker": "faker",
    "faker": "faker",
    "chance": "chance",
    "casual": "casual",
}
SEED_METHODS = frozenset({"seed", "setSeed"})
LODASH_RANDOM = frozenset({"random", "sample", "sampleSize", "shuffle"})
LODASH_OWNERS = frozenset({"_", "lodash"})


class RandomDataDetector(BaseDetector):
    """Values that change between runs make assertions nondeterministic."""

    detector_id = "no-random-data"
    code = "FT018"
    capability = Capability.ENVIRONMENT
    node_kinds = frozenset({syntax.CALL, syntax.NEW})
    description = "Disallow random and time-dependent data in tests."
    option_schema = {
        "allowInSetup": OptionSpec(BOOL, False),
        "allowSeededRandom": OptionSpec(BOOL, True),
        "allowedMethods": OptionSpec(STRING_LIST, []),
    }
    messages = {
        "avoidRandom": "Avoid '{{method}}'; random values make the test nondeterministic.",
        "avoidDateNow": "Avoid '{{method}}' in tests; mock the clock with fake timers.",
        "avoidNewDate": "'new Date()' reads the wall clock; pass a fixed date or use fake timers.",
        "avoidCryptoRandom": "Avoid '{{method}}'; use a fixed value in tests.",
        "avoidUUID": "Generated ids differ between runs; use a fixed id in tests.",
        "useSeed": "Seed {{library}} so generated data is reproducible.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if self.setup_allowed(context, options) or context.inside_mocked_block:
            return []
        identity = self.identity(node)
        if identity is None:
            return []
        allowed = options["allowedMethods"]
        if identity.method in allowed or identity.qualified_name in allowed:
            return []
        if node.type == syntax.NEW:
            return self._new(node, identity)
        data = {"method": identity.qualified_name}
        owner = identity.object
        if owner == "Math" and identity.method == "random" and not self._bound("Math", node):
            if options["allowSeededRandom"] and self._seeds_math_random():
                return []
            return [self.finding(node, "avoidRandom", data)]
        if (owner, identity.method) in CLOCK_CALLS and not self._bound(owner, node):
            if uses_fake_timers(self):
                return []
            return [self.finding(node, "avoidDateNow", data)]
        if owner is None and identity.method == "Date" and not syntax.arguments(node) \
                and not self._bound("Date", node):
            return self._wall_clock(node)
        if self._is_crypto(identity, node):
            if identity.method == "randomUUID":
                return [self.finding(node, "avoidUUID", data)]
            if identity.method in CRYPTO_METHODS:
                return [self.finding(node, "avoidCryptoRandom", data)]
            return []
        if identity.module_origin in ID_MODULES:
            return [self.finding(node, "avoidUUID", data)]
        library = self._faker_library(identity)
        if library is not None:
            if identity.method in SEED_METHODS:
                return []
            if options["allowSeededRandom"] and library in self._seeded_libraries():
                return []
            return [self.finding(node, "useSeed", {"library": library})]
        if identity.method in LODASH_RANDOM and (
                owner in LODASH_OWNERS and not self._bound(owner, node) or identity.module_origin == "lodash"):
            return [self.finding(node, "avoidRandom", data)]
        return []

    def _new(self, node: Node, identity: CallIdentity) -> list[Finding]:
        if identity.object is None and identity.method == "Date" and not syntax.arguments(node) \
                and not self._bound("Date", node):
            return self._wall_clock(node)
        return []

    def _wall_clock(self, node: Node) -> list[Finding]:
        if uses_fake_timers(self):
            return []
        return [self.finding(node, "avoidNewDate")]

    def _bound(self, name: str, node: Node) -> bool:
        binding = self.source.bindings.lookup(name, node)
        return binding is not None and binding.module is None

    def _is_crypto(self, identity: CallIdentity, node: Node) -> bool:
        if identity.module_origin in ("crypto", "node:crypto"):
            return True
        return identity.object in CRYPTO_OWNERS and not self._bound("crypto", node)

    @staticmethod
    def _faker_library(identity: CallIdentity) -> str | None:
        if identity.module_origin in FAKER_MODULES:
            return FAKER_MODULES[identity.module_origin]
        root = syntax.path_root(identity.object)
        return FAKER_LIBRARIES.get(root) if root is not None else None

    def _seeded_libraries(self) -> frozenset[str]:
        """Libraries seeded anywhere in the file: `faker.seed(1)`, `new Chance(42)`."""

        def compute() -> frozenset[str]:
            seeded = set()
            for inner in syntax.walk(self.source.root):
                if inner.type not in (syntax.CALL, syntax.NEW):
                    continue
                identity = self.identity(inner)
                if identity is None:
                    continue
                if inner.type == syntax.NEW and identity.method == "Chance" and syntax.arguments(inner):
                    seeded.add("chance")
                elif identity.method in SEED_METHODS:
                    library = self._faker_library(identity)
                    if library is not None:
                        seeded.add(library)
            return frozenset(seeded)

        return self.source.fact("seeded_fakers", compute)

    def _seeds_math_random(self) -> bool:
        """`seedrandom('x', { global: true })` or `Math.seedrandom(...)` replaces Math.random."""

        def compute() -> bool:
            for inner in syntax.walk(self.source.root):
                if inner.type != syntax.CALL:
                    continue
                identity = self.identity(inner)
                if identity is None:
                    continue
                if identity.method == "seedrandom" or identity.module_origin == "seedrandom":
                    return True
            return False

        return self.source.fact("seeds_math_random", compute)
