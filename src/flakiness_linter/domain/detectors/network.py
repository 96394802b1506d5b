"""Real network traffic from tests."""

import re
from urllib.parse import urlsplit

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, STRING_LIST, OptionSpec, RuleOptions
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import CallIdentity, Capability, DetectorContext, Finding
from flakiness_linter.domain.mocks import GLOBAL_OBJECTS, normalize_module

ALWAYS_NETWORK = frozenset({"request", "superagent", "got", "node-fetch", "cross-fetch", "isomorphic-fetch", "ky"})
CONDITIONAL_MODULES = frozenset({"http", "https"})
CONDITIONAL_METHODS = frozenset({"get", "request"})
HTTP_METHODS = frozenset({"get", "post", "put", "delete", "patch", "request", "head", "options"})
JQUERY_METHODS = frozenset({"ajax", "get", "post", "put", "delete", "patch", "getJSON", "load"})
FETCH_MODULES = frozenset({"node-fetch", "cross-fetch", "isomorphic-fetch", "undici"})
URL_LIKE_NAME = re.compile(r"(url|uri|endpoint|api|href)", re.I)
EXTERNAL_APIS = (
    re.compile(r"(^|\.)jsonplaceholder\.typicode\.com$"),
    re.compile(r"^api\.github\.com$"),
    re.compile(r"(^|\.)googleapis\.com$"),
    re.compile(r"^httpbin\.org$"),
    re.compile(r"^reqres\.in$"),
)
LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "[::1]", "::1"})


class UnmockedNetworkDetector(BaseDetector):
    """fetch/axios/jQuery/request-style calls, XHR and WebSockets that are not mocked."""

    detector_id = "no-unmocked-network"
    code = "FT004"
    capability = Capability.ACCESS
    node_kinds = frozenset({syntax.CALL, syntax.NEW})
    description = "Disallow real network requests in tests."
    option_schema = {
        "allowInIntegration": OptionSpec(BOOL, False),
        "allowLocalhost": OptionSpec(BOOL, True),
        "allowedDomains": OptionSpec(STRING_LIST, []),
        "mockModules": OptionSpec(STRING_LIST, ["axios", "fetch", "request", "http", "https"]),
    }
    messages = {
        "mockNetwork": "Unmocked network request via '{{method}}'; mock it with msw, nock or jest.mock().",
        "avoidExternalAPI": "Test calls a real external API; replace it with a mocked response.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if options["allowInIntegration"] and self.source.is_integration:
            return []
        if context.inside_mocked_block:
            return []
        identity = self.identity(node)
        if identity is None:
            return []
        if node.type == syntax.NEW:
            return self._constructor(node, identity, options)
        classified = self._classify(node, identity)
        if classified is None:
            return []
        key, url_node, requires_url = classified
        if self._mocked(key, options):
            return []
        verdict = self._url_verdict(url_node, options)
        if verdict == "allowed":
            return []
        if verdict == "external":
            return [self.finding(node, "avoidExternalAPI", {"method": identity.qualified_name})]
        if verdict == "unknown" and requires_url:
            return []
        return [self.finding(node, "mockNetwork", {"method": identity.qualified_name})]

    def _classify(self, node: Node, identity: CallIdentity) -> tuple[str, Node | None, bool] | None:
        """(module key, url argument, whether a url-looking argument is required)."""
        module = normalize_module(identity.module_origin) if identity.module_origin else None
        owner = identity.object
        first = syntax.argument(node, 0)
        if identity.method == "fetch" and (owner is None or owner in GLOBAL_OBJECTS):
            if module in FETCH_MODULES:
                return (module, first, False)
            return ("fetch", first, True)
        if module == "axios" or syntax.path_root(owner) == "axios" or (owner is None and identity.method == "axios"):
            if owner is None or identity.method in HTTP_METHODS:
                url = syntax.object_property(first, "url") if first is not None and first.type == syntax.OBJECT else first
                return ("axios", url, False)
            return None
        if syntax.path_root(owner) in ("$", "jQuery") and identity.method in JQUERY_METHODS:
            url = syntax.object_property(first, "url") if first is not None and first.type == syntax.OBJECT else first
            return ("jquery", url, False)
        name = module if module is not None else (identity.method if owner is None else syntax.path_root(owner))
        if name in ALWAYS_NETWORK:
            if owner is None or identity.method in HTTP_METHODS or identity.method in ("send", "stream"):
                return (name, first, False)
            return None
        if module in CONDITIONAL_MODULES and identity.method in CONDITIONAL_METHODS:
            return (module, first, False)
        return None

    def _constructor(self, node: Node, identity: CallIdentity, options: RuleOptions) -> list[Finding]:
        if identity.object is not None and identity.object not in GLOBAL_OBJECTS:
            return []
        if identity.method == "XMLHttpRequest":
            if self._mocked("XMLHttpRequest", options):
                return []
            return [self.finding(node, "mockNetwork", {"method": "XMLHttpRequest"})]
        if identity.method == "WebSocket":
            first = syntax.argument(node, 0)
            literal = syntax.literal_text(first)
            if first is None:
                return []
            if literal is not None:
                if not literal.startswith(("ws://", "wss://")):
                    return []
                if self._url_verdict(first, options) == "allowed":
                    return []
            return [self.finding(node, "mockNetwork", {"method": "WebSocket"})]
        return []

    def _mocked(self, key: str, options: RuleOptions) -> bool:
        mocks = self.source.mocks
        if key in options["mockModules"] and mocks.is_module_mocked(key):
            return True
        if key == "fetch":
            return mocks.has_library("fetch-mock", "jest-fetch-mock", "msw", "msw/node", "nock")
        return mocks.is_module_mocked(key)

    def _url_verdict(self, node: Node | None, options: RuleOptions) -> str:
        """'allowed' | 'external' | 'network' | 'unknown'."""
        node = syntax.unwrap(node)
        if node is None:
            return "unknown"
        literal = syntax.literal_text(node)
        if literal is None:
            if node.type == syntax.IDENTIFIER and URL_LIKE_NAME.search(syntax.text(node)):
                return "network"
            if node.type in (syntax.MEMBER, syntax.CALL, syntax.NEW) and URL_LIKE_NAME.search(syntax.text(node)):
                return "network"
            return "unknown"
        lowered = literal.strip().lower()
        if lowered.startswith(("data:", "file:", "blob:")):
            return "allowed"
        if lowered.startswith("/") and not lowered.startswith("//"):
            return "network"
        if not re.match(r"^(https?|wss?):", lowered) and not lowered.startswith("//"):
            return "unknown"
        host = (urlsplit(literal.strip() if not lowered.startswith("//") else "http:" + literal.strip()).hostname
                or "").lower()
        if options["allowLocalhost"] and (host in LOCAL_HOSTS or host.endswith(".localhost")):
            return "allowed"
        for domain in options["allowedDomains"]:
            domain = domain.lower().lstrip(".")
            if host == domain or host.endswith("." + domain):
                return "allowed"
        if any(p.search(host) for p in EXTERNAL_APIS):
            return "external"
        return "network"
