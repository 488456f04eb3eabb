"""Data lineage tracker: the end-to-end analysis pipeline.

adapter -> scope builder -> reference resolver -> graph assembly. Every call
is an independent run; nothing but the last result is kept on the tracker.
"""
import logging
from pathlib import Path
from typing import List, Optional, Union

from .adapter import TreeSitterAdapter
from .lineage_graph import LineageGraph, LineageGraphBuilder
from .parser import LanguageParser
from .resolver import ReferenceResolver
from .scope_builder import ScopeBuilder
from .syntax import SyntaxNode

logger = logging.getLogger(__name__)


class DataLineageTracker:
    """Map every variable use in a source file to the declaration it binds."""

    def __init__(self, language: str = 'javascript'):
        """Initialize tracker for given language.

        Args:
            language: One of 'javascript', 'typescript', 'tsx'

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = LanguageParser(language)
        self.graph: Optional[LineageGraph] = None

    @classmethod
    def for_file(cls, file_path: Union[str, Path]) -> 'DataLineageTracker':
        """Create a tracker whose language matches the file extension.

        Raises:
            ValueError: If the extension is not a supported language
        """
        parser = LanguageParser.from_file_extension(file_path)
        if parser is None:
            raise ValueError(f"Unsupported file type: {Path(file_path).suffix or file_path}")
        return cls(parser.language)

    def analyze_tree(self, root: SyntaxNode) -> LineageGraph:
        """Run scope building, resolution and assembly over a lowered tree.

        Raises:
            MalformedTree: If the tree is structurally invalid
        """
        scope_tree = ScopeBuilder().build(root)
        edges, diagnostics = ReferenceResolver(scope_tree).resolve_all(scope_tree.references)
        self.graph = LineageGraphBuilder(scope_tree).build(edges, diagnostics)
        return self.graph

    def analyze_source(self, source_code: Union[str, bytes]) -> LineageGraph:
        """Parse and analyze in-memory source code."""
        if isinstance(source_code, str):
            source_code = source_code.encode('utf-8')
        tree = self.parser.parse_source(source_code)
        root = TreeSitterAdapter(source_code).lower(tree)
        return self.analyze_tree(root)

    def analyze_file(self, file_path: Union[str, Path]) -> LineageGraph:
        """Read, parse and analyze a source file.

        Raises:
            FileNotFoundError: If the file does not exist
            MalformedTree: If the lowered tree is structurally invalid
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        logger.info("Analyzing %s as %s", file_path, self.language)
        return self.analyze_source(file_path.read_bytes())

    def get_full_lineage(self, variable_name: str) -> List[str]:
        """Describe where ``variable_name`` is declared and used.

        Returns:
            Lines of the form 'Declared in scope: ...' followed by one
            'Referenced in scope: ...' per use, for every declaration of that
            name in the last analyzed input. Empty if nothing was analyzed.
        """
        lineage = []
        if self.graph is None:
            return lineage

        for declaration in self.graph.find(variable_name):
            lineage.append(f"Declared in scope: {self.graph.qualified_name(declaration.scope_id)}")
            for reference in self.graph.references_of(declaration):
                lineage.append(f"Referenced in scope: {self.graph.qualified_name(reference.scope_id)}")
        return lineage
