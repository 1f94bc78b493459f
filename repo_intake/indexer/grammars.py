"""Language configuration and detection for regex-based chunk extraction."""

import logging
from pathlib import PurePosixPath
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Extraction families: how bodies are delimited and comments are written
C_LIKE = "c_like"
PYTHON = "python"
MARKUP = "markup"
DATA = "data"


class LanguageConfig:
    """Configuration for a programming language."""

    def __init__(
        self,
        name: str,
        display_name: str,
        extensions: List[str],
        family: str,
        has_type_declarations: bool = False,
        has_components: bool = False,
    ):
        """Initialize language configuration.

        Args:
            name: Language identifier (python, typescript, etc.)
            display_name: Human-readable name used in listings
            extensions: List of file extensions
            family: Extraction family (c_like, python, markup, data)
            has_type_declarations: Whether interface/type/enum matchers apply
            has_components: Whether UI component and hook matchers apply
        """
        self.name = name
        self.display_name = display_name
        self.extensions = extensions
        self.family = family
        self.has_type_declarations = has_type_declarations
        self.has_components = has_components

    @property
    def extracts_symbols(self) -> bool:
        return self.family in (C_LIKE, PYTHON)


BUILTIN_LANGUAGES = [
    LanguageConfig("typescript", "TypeScript", [".ts", ".tsx", ".mts", ".cts"], C_LIKE, True, True),
    LanguageConfig("javascript", "JavaScript", [".js", ".jsx", ".mjs", ".cjs"], C_LIKE, False, True),
    LanguageConfig("python", "Python", [".py", ".pyi"], PYTHON),
    LanguageConfig("java", "Java", [".java"], C_LIKE),
    LanguageConfig("go", "Go", [".go"], C_LIKE),
    LanguageConfig("rust", "Rust", [".rs"], C_LIKE),
    LanguageConfig("c", "C", [".c", ".h"], C_LIKE),
    LanguageConfig("cpp", "C++", [".cpp", ".cc", ".cxx", ".hpp"], C_LIKE),
    LanguageConfig("csharp", "C#", [".cs"], C_LIKE),
    LanguageConfig("php", "PHP", [".php"], C_LIKE),
    LanguageConfig("swift", "Swift", [".swift"], C_LIKE),
    LanguageConfig("kotlin", "Kotlin", [".kt", ".kts"], C_LIKE),
    LanguageConfig("scala", "Scala", [".scala"], C_LIKE),
    LanguageConfig("vue", "Vue", [".vue"], C_LIKE, False, True),
    LanguageConfig("ruby", "Ruby", [".rb"], MARKUP),
    LanguageConfig("markdown", "Markdown", [".md", ".rst"], MARKUP),
    LanguageConfig("json", "JSON", [".json"], DATA),
    LanguageConfig("yaml", "YAML", [".yaml", ".yml"], DATA),
    LanguageConfig("toml", "TOML", [".toml"], DATA),
    LanguageConfig("xml", "XML", [".xml", ".gradle"], DATA),
]


class LanguageRegistry:
    """Registry of language configurations."""

    def __init__(self, languages: Optional[List[LanguageConfig]] = None):
        """Initialize language registry.

        Args:
            languages: Language configurations (defaults to the built-in set)
        """
        self.languages: Dict[str, LanguageConfig] = {}
        self.extension_map: Dict[str, str] = {}
        self.display_map: Dict[str, str] = {}

        for language in languages or BUILTIN_LANGUAGES:
            self.languages[language.name] = language
            self.display_map[language.display_name.lower()] = language.name
            # Build extension to language mapping
            for ext in language.extensions:
                self.extension_map[ext] = language.name

        logger.debug(f"Loaded {len(self.languages)} language configurations")

    def detect_language(self, file_path: str) -> Optional[str]:
        """Detect programming language from file extension.

        Args:
            file_path: Path to the file

        Returns:
            Language name or None if not recognized
        """
        extension = PurePosixPath(file_path).suffix.lower()
        if extension in self.extension_map:
            return self.extension_map[extension]

        logger.debug(f"Unknown file extension: {extension}")
        return None

    def get_language_config(self, language: Optional[str]) -> Optional[LanguageConfig]:
        """Get configuration by identifier or display name.

        Args:
            language: Language identifier (``typescript``) or display name (``TypeScript``)

        Returns:
            Language configuration or None if not found
        """
        if not language:
            return None
        key = language.lower()
        if key in self.languages:
            return self.languages[key]
        name = self.display_map.get(key)
        return self.languages.get(name) if name else None

    def get_supported_languages(self) -> List[str]:
        return list(self.languages.keys())
