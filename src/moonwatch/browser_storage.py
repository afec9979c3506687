"""Blob store backed by the browser's localStorage (via streamlit-js-eval).

Reads are asynchronous on the JS side: the first script run usually sees None
and the component triggers a rerun with the real value. bootstrap() reports when
another pass is needed. Values are base64-encoded so JSON quotes survive the
JS string literal.
"""

import base64
import hashlib
import json
from typing import Any

from streamlit_js_eval import get_local_storage, set_local_storage, streamlit_js_eval


def _encode(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")


def _decode(raw: str) -> str | None:
    try:
        return base64.urlsafe_b64decode(raw.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeError):
        return None


def _eval_js_hidden(js_expression: str, *, key: str, want_output: bool = True) -> Any:
    # Keep streamlit_js_eval utility probes from reserving visible layout height.
    wrapped_expression = "(setFrameHeight(0), (" + js_expression + "))"
    return streamlit_js_eval(js_expressions=wrapped_expression, key=key, want_output=want_output)


class BrowserBlobStore:
    """Write-through cache over localStorage for the keys read at bootstrap."""

    def __init__(self, prefix: str = "moonwatch:") -> None:
        self._prefix = prefix
        self._cache: dict[str, str] = {}
        self._write_seq = 0

    def bootstrap(self, keys: list[str]) -> bool:
        """Pull keys from localStorage into the cache. Returns True if a rerun is needed."""
        retry_needed = False
        for key in keys:
            storage_key = self._prefix + key
            raw = get_local_storage(storage_key, component_key=f"ls_read_{key}")
            exists = _eval_js_hidden(
                "Object.prototype.hasOwnProperty.call(window.localStorage, "
                + json.dumps(storage_key)
                + ")",
                key=f"ls_exists_{key}",
            )
            if isinstance(raw, str) and raw:
                decoded = _decode(raw)
                if decoded is not None:
                    self._cache[key] = decoded
            elif exists is None or exists is True:
                retry_needed = True
        return retry_needed

    def get(self, key: str) -> str | None:
        return self._cache.get(key)

    def set(self, key: str, value: str) -> None:
        self._cache[key] = value
        encoded = _encode(value)
        digest = hashlib.sha1(encoded.encode("ascii")).hexdigest()[:12]
        self._write_seq += 1
        set_local_storage(
            self._prefix + key,
            encoded,
            component_key=f"ls_write_{key}_{digest}_{self._write_seq}",
        )

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        self._write_seq += 1
        _eval_js_hidden(
            "window.localStorage.removeItem(" + json.dumps(self._prefix + key) + ")",
            key=f"ls_delete_{key}_{self._write_seq}",
            want_output=False,
        )
