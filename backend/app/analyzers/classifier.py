"""Map file paths to language tags."""

from types import MappingProxyType

LANGUAGE_BY_EXTENSION = MappingProxyType(
    {
        "js": "javascript",
        "jsx": "javascript",
        "ts": "typescript",
        "tsx": "typescript",
        "java": "java",
        "py": "python",
        "rb": "ruby",
        "go": "go",
        "php": "php",
        "cs": "csharp",
        # Tracked, but no rules apply
        "css": "css",
        "html": "html",
        "md": "markdown",
    }
)

EXCLUDED_DIRS = frozenset({"node_modules", ".git", "build", "dist", "target", "bin"})


def is_excluded_dir(name: str) -> bool:
    return name in EXCLUDED_DIRS


def classify(path: str) -> str | None:
    """Return the language tag for a file path, or None when it is not analyzed.

    The extension is whatever follows the last dot of the file name. Paths
    with any directory segment in EXCLUDED_DIRS are never analyzed.
    """
    segments = path.replace("\\", "/").split("/")
    name = segments[-1]
    if any(is_excluded_dir(segment) for segment in segments[:-1]):
        return None
    if "." not in name:
        return None
    extension = name.rsplit(".", 1)[1].lower()
    return LANGUAGE_BY_EXTENSION.get(extension)
