"""Tree-sitter parser for the supported source dialects."""
from tree_sitter import Language, Parser, Tree
import tree_sitter_kotlin as tskotlin
import tree_sitter_python as tspython


UTF8_BOM = b'\xef\xbb\xbf'


class LanguageParser:
    """Dialect parser using the tree-sitter v0.22+ API."""

    def __init__(self, language: str):
        """Initialize parser for given language (kotlin, python).

        Args:
            language: One of 'kotlin', 'python'

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        """Build a Parser bound to the grammar of this language.

        Returns:
            Configured Parser instance

        Raises:
            ValueError: If language is not supported
        """
        if self.language == 'kotlin':
            lang = Language(tskotlin.language())
        elif self.language == 'python':
            lang = Language(tspython.language())
        else:
            raise ValueError(f"Unsupported language: {self.language}")

        return Parser(lang)

    def parse_source(self, source_code: bytes) -> Tree:
        """Parse in-memory source bytes.

        A leading UTF-8 byte order mark is dropped before parsing.

        Args:
            source_code: UTF-8 encoded source

        Returns:
            Parsed Tree (possibly containing ERROR nodes)
        """
        if source_code.startswith(UTF8_BOM):
            source_code = source_code[len(UTF8_BOM):]
        return self.parser.parse(source_code)
