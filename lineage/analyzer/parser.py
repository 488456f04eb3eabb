"""Tree-sitter parser for JavaScript and TypeScript sources."""
from pathlib import Path
from typing import Optional, Union
from tree_sitter import Language, Parser, Tree
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript


class LanguageParser:
    """JavaScript/TypeScript parser using the tree-sitter v0.22+ API."""

    SUPPORTED_LANGUAGES = {
        '.js': 'javascript',
        '.jsx': 'javascript',
        '.mjs': 'javascript',
        '.cjs': 'javascript',
        '.ts': 'typescript',
        '.tsx': 'tsx',
    }

    def __init__(self, language: str):
        """Initialize parser for given language.

        Args:
            language: One of 'javascript', 'typescript', 'tsx'

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        """Build a Parser bound to the grammar for ``self.language``.

        Returns:
            Configured Parser instance

        Raises:
            ValueError: If language is not supported
        """
        if self.language == 'javascript':
            lang = Language(tsjavascript.language())
        elif self.language == 'typescript':
            lang = Language(tstypescript.language_typescript())
        elif self.language == 'tsx':
            lang = Language(tstypescript.language_tsx())
        else:
            raise ValueError(f"Unsupported language: {self.language}")

        return Parser(lang)

    def parse_source(self, source_code: Union[str, bytes]) -> Tree:
        """Parse in-memory source code.

        Args:
            source_code: Source text; str is encoded as UTF-8

        Returns:
            Parsed Tree object
        """
        if isinstance(source_code, str):
            source_code = source_code.encode('utf-8')
        return self.parser.parse(source_code)

    @classmethod
    def from_file_extension(cls, file_path: Union[str, Path]) -> Optional['LanguageParser']:
        """Create parser based on file extension.

        Returns:
            LanguageParser instance, or None if extension not supported
        """
        extension = Path(file_path).suffix.lower()

        language = cls.SUPPORTED_LANGUAGES.get(extension)
        if language:
            return cls(language)
        return None
