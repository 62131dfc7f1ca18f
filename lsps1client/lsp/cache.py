import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from lsps1client.blip51.utils import pubkey_from_uri

logger = logging.getLogger(name=__name__)

INFO_KEY = 'lsp_info'
PUBKEYS_KEY = 'lsp_pubkeys'


class LspCache:
    """
    Best-effort store for LSP capability documents and the LSP node pubkeys
    we've seen. Nothing reads from here as a source of truth: any read or
    write failure is logged and the cache simply behaves as if it were
    empty. Without a path the cache lives in memory only.
    """
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data
        data: Dict[str, Any] = {}
        if self.path is not None and self.path.is_file():
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    logger.warning(f'ignoring malformed cache at {self.path}')
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f'could not read cache at {self.path}: {e}')
        data.setdefault(INFO_KEY, {})
        data.setdefault(PUBKEYS_KEY, [])
        if not isinstance(data[INFO_KEY], dict):
            data[INFO_KEY] = {}
        if not isinstance(data[PUBKEYS_KEY], list):
            data[PUBKEYS_KEY] = []
        self._data = data
        return data

    def _save(self) -> None:
        if self.path is None or self._data is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, indent=2)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f'could not write cache at {self.path}: {e}')

    def get_lsp_info(self, slug: str) -> Optional[Dict[str, Any]]:
        document = self._load()[INFO_KEY].get(slug)
        return document if isinstance(document, dict) else None

    def store_lsp_info(self, slug: str, document: Dict[str, Any]) -> None:
        self._load()[INFO_KEY][slug] = document
        self._save()

    def invalidate(self, slug: Optional[str] = None) -> None:
        """drop capability data, observed pubkeys are kept on purpose"""
        data = self._load()
        if slug is None:
            data[INFO_KEY] = {}
        else:
            data[INFO_KEY].pop(slug, None)
        self._save()

    def get_pubkeys(self) -> List[str]:
        return [k for k in self._load()[PUBKEYS_KEY] if isinstance(k, str)]

    def add_pubkeys(self, pubkeys: Iterable[str]) -> List[str]:
        known = self.get_pubkeys()
        added = [k for k in dict.fromkeys(pubkeys) if k and k not in known]
        if added:
            self._load()[PUBKEYS_KEY] = known + added
            self._save()
            logger.debug(f'cached {len(added)} new LSP pubkey(s)')
        return self.get_pubkeys()

    def add_pubkeys_from_uris(self, uris: Iterable[str]) -> List[str]:
        return self.add_pubkeys(
            pubkey for pubkey in map(pubkey_from_uri, uris) if pubkey)

    def clear_pubkeys(self) -> None:
        self._load()[PUBKEYS_KEY] = []
        self._save()
