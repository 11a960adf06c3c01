"""Path and URL normalization utilities.

This module centralizes the project's path rules:

- Use absolute paths when interacting with the filesystem.
- Use a stable, normalized key for paths (forward slashes + drive letter
  normalization on Windows).
- Turn a filesystem path into the URL that keys both cache layers, and back.

Qt is only used for `QUrl`, which handles percent-encoding and Windows drive
letters consistently with the rest of the application.
"""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import QUrl

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        # strict=False avoids exceptions for non-existent paths.
        return p.resolve(strict=False)
    except OSError:
        return p.absolute()


def abs_path_str(path: str | Path) -> str:
    """Absolute, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(abs_path(path)))


def abs_dir(path: str | Path) -> Path:
    """Absolute directory path.

    If the path exists and is not a directory, returns its parent.
    """
    p = abs_path(path)
    try:
        if p.exists() and not p.is_dir():
            return p.parent
    except OSError:
        pass
    return p


def path_key(path: str | Path) -> str:
    """Stable key for a filesystem path."""
    return _normalize_drive_letter(abs_path_str(path)).replace("\\", "/")


def url_for_path(path: str | Path) -> str:
    """Default resolver: map a filesystem path to a loadable `file://` URL."""
    return QUrl.fromLocalFile(path_key(path)).toEncoded().data().decode("ascii")


def local_path_for_url(url: str) -> str:
    """Inverse of `url_for_path`.

    Strings without a scheme are treated as plain filesystem paths so callers
    can hand in either form.
    """
    qurl = QUrl(url)
    if qurl.isLocalFile():
        return _normalize_drive_letter(qurl.toLocalFile())
    if not qurl.scheme() or len(qurl.scheme()) == 1:
        # No scheme, or a single-letter "scheme" that is really a drive letter.
        return _normalize_drive_letter(url)
    raise ValueError(f"not a local file URL: {url}")
