from __future__ import annotations

from .models import LoadedImage


class SessionCache:
    """Process-lifetime map of URL -> LoadedImage.

    No expiry and no size bound; it only dedupes work within one run and is
    emptied by `clear()`.
    """

    def __init__(self) -> None:
        self._images: dict[str, LoadedImage] = {}

    def get(self, url: str) -> LoadedImage | None:
        return self._images.get(url)

    def set(self, url: str, image: LoadedImage) -> None:
        self._images[url] = image

    def clear(self) -> None:
        self._images.clear()

    def __contains__(self, url: object) -> bool:
        return url in self._images

    def __len__(self) -> int:
        return len(self._images)
