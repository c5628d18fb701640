"""
Content analysis: turn one file's text into Findings.

Script sources (JavaScript/TypeScript, with JSX) are parsed with
tree-sitter and inspected structurally: credential-named variable
declarations and string literals tested against every signature. Anything
else, and any script that fails to parse, is scanned with the catalog's
patterns over the raw text. A file is analyzed by exactly one of the two
paths.
"""
import bisect
import logging
from enum import Enum
from functools import lru_cache
from pathlib import PurePath
from typing import Iterator, List, Optional, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from secret_scanner.config import ScanConfiguration
from secret_scanner.entropy import passes_validation, shannon_entropy
from secret_scanner.errors import ParseError
from secret_scanner.models import (
    MAX_LINE_CONTENT_LENGTH,
    Finding,
    Signature,
    bound_text,
)
from secret_scanner.patterns import SignatureCatalog, get_default_catalog

logger = logging.getLogger(__name__)

VARIABLE_DECLARATION = "Variable Declaration"

# Case-insensitive substrings that mark a variable name as credential-like
CREDENTIAL_TERMS = (
    "password", "secret", "key", "token", "auth", "credential",
    "api_key", "apikey", "private_key", "access_token",
)


class FileKind(Enum):
    SCRIPT = "script"
    DATA = "data"
    TEXT = "text"


# Extension -> tree-sitter grammar
SCRIPT_DIALECTS = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

DATA_EXTENSIONS = {
    ".json", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf",
    ".env", ".properties", ".xml", ".plist",
}


def file_kind(file_path: str) -> FileKind:
    """Logical kind of a file, from its extension."""
    suffix = PurePath(file_path).suffix.lower()
    if suffix in SCRIPT_DIALECTS:
        return FileKind.SCRIPT
    if suffix in DATA_EXTENSIONS or PurePath(file_path).name.startswith(".env"):
        return FileKind.DATA
    return FileKind.TEXT


def is_credential_name(name: str) -> bool:
    lowered = name.lower()
    return any(term in lowered for term in CREDENTIAL_TERMS)


# ===================================================================
# SYNTAX TREE
# ===================================================================

@lru_cache(maxsize=None)
def _language(dialect: str) -> Language:
    if dialect == "typescript":
        return Language(tree_sitter_typescript.language_typescript())
    if dialect == "tsx":
        return Language(tree_sitter_typescript.language_tsx())
    return Language(tree_sitter_javascript.language())


def parse_source(source_text: str, dialect: str) -> Tree:
    """
    Parse script source into a syntax tree.

    A fresh Parser is created per call; parsers must not be shared
    between worker threads.

    Raises:
        ParseError: the source has syntax errors
    """
    parser = Parser(_language(dialect))
    tree = parser.parse(source_text.encode("utf-8"))
    if tree.root_node.has_error:
        raise ParseError(f"Syntax errors in {dialect} source")
    return tree


def _iter_nodes(root: Node) -> Iterator[Node]:
    """Pre-order traversal in source order, without recursion."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _literal_value(node: Node) -> Optional[str]:
    if node.type == "string":
        return node.text[1:-1].decode("utf-8", errors="replace")
    if node.type == "template_string":
        return "".join(
            child.text.decode("utf-8", errors="replace")
            for child in node.children
            if child.type == "string_fragment"
        )
    return None


# ===================================================================
# MATCHING
# ===================================================================

def _accepts(signature: Signature, match, config: ScanConfiguration) -> bool:
    """Run the signature's extra validation filter, if it has one."""
    if not signature.validation:
        return True
    value = match.groupdict().get("value") or match.group(0)
    threshold = max(signature.min_entropy, config.minimum_entropy_threshold)
    return passes_validation(signature.validation, value, threshold)


def analyze_structure(
    tree: Tree,
    file_path: str,
    signatures: List[Signature],
    config: ScanConfiguration,
) -> List[Finding]:
    """
    Inspect a parsed script.

    Emits a medium "Variable Declaration" finding for every initialized
    declarator whose name looks credential-like, and for every string
    literal one finding per signature whose pattern matches its value.

    Args:
        tree: Syntax tree from parse_source()
        file_path: Path reported on the findings
        signatures: Signatures to test literals against
        config: Scan configuration

    Returns:
        Findings in source order
    """
    ordered: List[Tuple[Tuple[int, int, int], Finding]] = []

    for node in _iter_nodes(tree.root_node):
        line = node.start_point[0] + 1

        if node.type == "variable_declarator":
            name_node = node.child_by_field_name("name")
            value_node = node.child_by_field_name("value")
            if name_node is None or value_node is None or name_node.type != "identifier":
                continue
            var_name = name_node.text.decode("utf-8", errors="replace")
            if is_credential_name(var_name):
                ordered.append(((node.start_byte, -1, -1), Finding(
                    signature_name=VARIABLE_DECLARATION,
                    severity="medium",
                    description=f"Potential credential variable: {var_name}",
                    matched_text=bound_text(var_name),
                    file_path=file_path,
                    line=line,
                )))
            continue

        literal = _literal_value(node)
        if not literal:
            continue

        for index, signature in enumerate(signatures):
            try:
                match = next(
                    (m for m in signature.pattern.finditer(literal) if _accepts(signature, m, config)),
                    None,
                )
            except Exception as e:
                logger.warning(f"Signature {signature.name} failed on {file_path}: {e}")
                continue
            if match is None:
                continue
            ordered.append(((node.start_byte, match.start(), index), Finding(
                signature_name=signature.name,
                severity=signature.severity,
                description=signature.description,
                matched_text=bound_text(match.group(0)),
                file_path=file_path,
                line=line,
            )))

    ordered.sort(key=lambda item: item[0])
    return [finding for _, finding in ordered]


def analyze_text(
    source_text: str,
    file_path: str,
    signatures: List[Signature],
    config: ScanConfiguration,
) -> List[Finding]:
    """
    Scan raw text with every signature.

    Each match yields one finding with its 1-based line, the trimmed source
    line as context and the entropy of the matched text. Matches are local
    to this call (no shared cursor state), and one failing signature is
    logged and skipped rather than aborting the file.
    """
    newlines = [i for i, ch in enumerate(source_text) if ch == "\n"]
    lines = source_text.split("\n")
    ordered: List[Tuple[Tuple[int, int], Finding]] = []

    for index, signature in enumerate(signatures):
        try:
            for match in signature.pattern.finditer(source_text):
                if not _accepts(signature, match, config):
                    continue
                line_number = bisect.bisect_left(newlines, match.start()) + 1
                matched = match.group(0)
                ordered.append(((match.start(), index), Finding(
                    signature_name=signature.name,
                    severity=signature.severity,
                    description=signature.description,
                    matched_text=bound_text(matched),
                    file_path=file_path,
                    line=line_number,
                    line_content=bound_text(lines[line_number - 1].strip(), MAX_LINE_CONTENT_LENGTH),
                    entropy=round(shannon_entropy(matched), 3),
                )))
        except Exception as e:
            logger.warning(f"Signature {signature.name} failed on {file_path}: {e}")
            continue

    ordered.sort(key=lambda item: item[0])
    return [finding for _, finding in ordered]


def analyze(
    source_text: str,
    file_path: str,
    config: Optional[ScanConfiguration] = None,
    catalog: Optional[SignatureCatalog] = None,
) -> List[Finding]:
    """
    Analyze one file's content for credentials.

    Args:
        source_text: Decoded file content
        file_path: Path used for kind detection and reported on findings
        config: Scan configuration (defaults when omitted)
        catalog: Signature catalog (the shared default when omitted)

    Returns:
        Findings in source-position order
    """
    config = config or ScanConfiguration()
    signatures = (catalog or get_default_catalog()).all_signatures()
    kind = file_kind(file_path)

    if kind is FileKind.SCRIPT and config.enable_structural_analysis:
        dialect = SCRIPT_DIALECTS[PurePath(file_path).suffix.lower()]
        try:
            tree = parse_source(source_text, dialect)
        except ParseError as e:
            logger.debug(f"Falling back to pattern scan for {file_path}: {e}")
        else:
            return analyze_structure(tree, file_path, signatures, config)

    return analyze_text(source_text, file_path, signatures, config)
