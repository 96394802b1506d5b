"""Tree-sitter Gateway - Infrastructure implementation of ParserProtocol."""

from pathlib import PurePath

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from flakiness_linter.domain.constants import SOURCE_EXTENSIONS, TS_EXTENSIONS, TSX_EXTENSIONS
from flakiness_linter.domain.errors import ParseError
from flakiness_linter.domain.protocols import ParserProtocol

JAVASCRIPT = "javascript"
TYPESCRIPT = "typescript"
TSX = "tsx"


class TreeSitterGateway(ParserProtocol):
    """Parses JavaScript, TypeScript and TSX with the grammar matching the file extension."""

    def __init__(self) -> None:
        self._languages = {
            JAVASCRIPT: Language(tree_sitter_javascript.language()),
            TYPESCRIPT: Language(tree_sitter_typescript.language_typescript()),
            TSX: Language(tree_sitter_typescript.language_tsx()),
        }
        self._parsers: dict[str, Parser] = {}

    def dialect_for(self, path: str) -> str:
        suffix = PurePath(path).suffix.lower()
        if suffix in TSX_EXTENSIONS:
            return TSX
        if suffix in TS_EXTENSIONS:
            return TYPESCRIPT
        return JAVASCRIPT

    def supports(self, path: str) -> bool:
        return PurePath(path).suffix.lower() in SOURCE_EXTENSIONS

    def _parser(self, dialect: str) -> Parser:
        if dialect not in self._parsers:
            self._parsers[dialect] = Parser(self._languages[dialect])
        return self._parsers[dialect]

    def parse(self, source: bytes, path: str) -> Node:
        """Parse UTF-8 source; undecodable bytes raise ParseError."""
        try:
            source.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e
        return self._parser(self.dialect_for(path)).parse(source).root_node

    def parses_cleanly(self, source: bytes, path: str) -> bool:
        try:
            root = self.parse(source, path)
        except ParseError:
            return False
        return not root.has_error

    def parse_text(self, text: str, path: str = "snippet.test.js") -> Node:
        return self.parse(text.encode("utf-8"), path)
