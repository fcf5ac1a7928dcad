import logging
import os
from typing import Dict, Optional, Union

from plugins.auto_web.document import HTMLDocument

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Cache key of the built-in skeleton used when a page has no template.
DEFAULT_TEMPLATE_KEY = "<default>"


class DocumentCache:
    """Parsed templates keyed by absolute path.

    Every template is read and scanned once. Callers always get a clone, the
    stored prototype is never handed out, so pages can be reconciled
    independently.
    """

    def __init__(self):
        self._documents: Dict[str, HTMLDocument] = {}

    @staticmethod
    def key_for(template_path: Optional[Union[str, os.PathLike]]) -> str:
        if template_path is None:
            return DEFAULT_TEMPLATE_KEY
        return os.path.abspath(os.fspath(template_path))

    def load(self, template_path: Optional[Union[str, os.PathLike]] = None) -> HTMLDocument:
        key = self.key_for(template_path)
        prototype = self._documents.get(key)
        if prototype is not None:
            logger.debug("[auto_web] template cache hit %s", key)
            return prototype.clone()

        logger.debug("[auto_web] template cache miss %s", key)
        document = HTMLDocument.from_file(None if key == DEFAULT_TEMPLATE_KEY else key)
        self._documents[key] = document.clone()
        return document

    def clear(self) -> None:
        self._documents.clear()

    def __contains__(self, template_path) -> bool:
        return self.key_for(template_path) in self._documents

    def __len__(self) -> int:
        return len(self._documents)
