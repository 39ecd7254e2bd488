"""
Persistence of the last edited text
Owned by the command line front end; the analysis and layout engines
never touch it
"""

import json
import logging
import os
from pathlib import Path


STORAGE_KEY = 'charcount-text'


def default_state_path():
    base = os.environ.get('XDG_STATE_HOME') or Path.home() / '.local' / 'state'
    return Path(base) / 'genkou' / 'state.json'


class TextStore:
    """Key-value store holding a single text"""

    def load(self) -> str:
        raise NotImplementedError

    def save(self, text: str):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError


class MemoryTextStore(TextStore):

    def __init__(self, text=''):
        self.text = text

    def load(self):
        return self.text

    def save(self, text):
        self.text = text

    def clear(self):
        self.text = ''


class FileTextStore(TextStore):
    """Stores the text under STORAGE_KEY in a small JSON file"""

    def __init__(self, path=None):
        self.path = Path(path) if path else default_state_path()

    def _read(self):
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logging.warning(f"Ignoring unreadable state file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False)

    def load(self):
        return self._read().get(STORAGE_KEY, '')

    def save(self, text):
        data = self._read()
        data[STORAGE_KEY] = text
        self._write(data)

    def clear(self):
        data = self._read()
        if data.pop(STORAGE_KEY, None) is not None:
            self._write(data)
