"""Tree-sitter symbol extraction for supported languages."""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_rust
from tree_sitter import Language, Node, Parser, Query, QueryCursor, QueryError

from core.errors import FileAccessError, ParseError

logger = logging.getLogger(__name__)

NAME_CAPTURE = "name"
NODE_CAPTURE = "node"


class SymbolKind(str, Enum):
    """Kind of structural definition."""
    FUNCTION = "function"
    CLASS = "class"


class Symbol(NamedTuple):
    """A named definition found in a source file."""
    path: Path
    line: int  # 1-based start line of the definition
    kind: SymbolKind
    name: str
    code: str  # Full text of the definition, used as the text to embed


@dataclass(frozen=True)
class LanguageConfig:
    """Grammar and pattern queries for one language."""
    name: str
    extensions: Tuple[str, ...]
    grammar: Callable[[], object]
    function_query: str
    class_query: Optional[str] = None

    def queries(self) -> List[Tuple[SymbolKind, str]]:
        """Pattern queries in the order they are run."""
        result = [(SymbolKind.FUNCTION, self.function_query)]
        if self.class_query:
            result.append((SymbolKind.CLASS, self.class_query))
        return result


LANGUAGES: Tuple[LanguageConfig, ...] = (
    LanguageConfig(
        name="python",
        extensions=(".py",),
        grammar=tree_sitter_python.language,
        function_query="(function_definition name: (identifier) @name) @node",
        class_query="(class_definition name: (identifier) @name) @node",
    ),
    LanguageConfig(
        name="rust",
        extensions=(".rs",),
        grammar=tree_sitter_rust.language,
        function_query="(function_item name: (identifier) @name) @node",
    ),
    LanguageConfig(
        name="javascript",
        extensions=(".js", ".mjs", ".cjs", ".jsx"),
        grammar=tree_sitter_javascript.language,
        function_query="(function_declaration name: (identifier) @name) @node",
        class_query="(class_declaration name: (identifier) @name) @node",
    ),
)

_BY_EXTENSION: Dict[str, LanguageConfig] = {
    ext: cfg for cfg in LANGUAGES for ext in cfg.extensions
}


def language_for_path(path: Path) -> Optional[LanguageConfig]:
    """Return the language registered for the file's extension, if any."""
    return _BY_EXTENSION.get(Path(path).suffix.lower())


@lru_cache(maxsize=None)
def _load_language(cfg: LanguageConfig) -> Language:
    return Language(cfg.grammar())


@lru_cache(maxsize=None)
def compile_query(cfg: LanguageConfig, source: str) -> Query:
    """
    Compile a pattern query against the language's grammar.

    Raises:
        ParseError: If the query is malformed or lacks the @name/@node captures.
    """
    try:
        query = Query(_load_language(cfg), source)
    except QueryError as e:
        raise ParseError(f"invalid {cfg.name} query {source!r}: {e}") from e

    captures = {query.capture_name(i) for i in range(query.capture_count)}
    for required in (NAME_CAPTURE, NODE_CAPTURE):
        if required not in captures:
            raise ParseError(f"{cfg.name} query {source!r} is missing the @{required} capture")
    return query


def _node_text(source: bytes, node: Node) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8")


def symbols_from_source(path: Path, source: bytes, cfg: LanguageConfig) -> List[Symbol]:
    """
    Extract symbols from already-read source bytes.

    Args:
        path: Path recorded on each symbol.
        source: UTF-8 encoded file content.
        cfg: Language to parse the content as.

    Returns:
        Function matches in tree order, followed by class matches.
    """
    try:
        source.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"{path} is not valid UTF-8: {e}") from e

    parser = Parser(_load_language(cfg))
    tree = parser.parse(source)
    root = tree.root_node

    symbols: List[Symbol] = []
    for kind, query_source in cfg.queries():
        query = compile_query(cfg, query_source)
        for _, captures in QueryCursor(query).matches(root):
            name_nodes = captures.get(NAME_CAPTURE)
            def_nodes = captures.get(NODE_CAPTURE)
            if not name_nodes or not def_nodes:
                continue
            def_node = def_nodes[0]
            symbols.append(Symbol(
                path=path,
                line=def_node.start_point[0] + 1,
                kind=kind,
                name=_node_text(source, name_nodes[0]),
                code=_node_text(source, def_node),
            ))
    return symbols


def extract_symbols(path: Path) -> List[Symbol]:
    """
    Enumerate functions and classes defined in a single source file.

    Files whose extension has no registered language yield an empty list.

    Raises:
        FileAccessError: If the file cannot be read.
        ParseError: If the file is not UTF-8 or a query cannot be compiled.
    """
    path = Path(path)
    cfg = language_for_path(path)
    if cfg is None:
        return []

    try:
        source = path.read_bytes()
    except OSError as e:
        raise FileAccessError(f"failed to read {path}: {e}") from e

    symbols = symbols_from_source(path, source, cfg)
    logger.debug(f"{path}: {len(symbols)} symbols ({cfg.name})")
    return symbols
