"""pylsp-ruby-inlay-hints: Ruby inlay hints for python-lsp-server via tree-sitter.

pylsp serves Python, but its plugin hooks let a plugin answer any request for
any open document. This plugin uses them to annotate Ruby files:

  - Announce inlayHintProvider. pylsp has no hookspec for it, so the server's
    capabilities() is patched at import time; when that fails the provider
    goes out through pylsp_experimental_capabilities instead.

  - Answer "textDocument/inlayHint" through pylsp_dispatchers. Requests for
    non-Ruby documents get an empty list; Ruby sources are parsed and handed
    to hints.compute_inlay_hints with the request range and the
    ruby_inlay_hints settings.
"""
from __future__ import annotations
import logging
import os
from typing import Any, Dict, List
from pylsp import hookimpl, uris

from .config import DEFAULT_SETTINGS, RequestConfig
from .hints import RequestedRange, compute_inlay_hints

log = logging.getLogger(__name__)

PLUGIN_NAME = "ruby_inlay_hints"

_INLAY_HINT_PROVIDER = {"resolveProvider": False}

_RUBY_SUFFIXES = (".rb", ".rake", ".gemspec", ".ru")
_RUBY_FILENAMES = {"Gemfile", "Rakefile"}

# ---------------------------------------------------------------------------
# Capability injection (monkey-patch)
# ---------------------------------------------------------------------------
# Clients only ask for inlay hints when the server advertises the
# provider, and no pylsp hook contributes to the regular capabilities dict.
# ---------------------------------------------------------------------------

def _inject_capabilities() -> bool:
    """Wrap PythonLSPServer.capabilities() so it advertises inlayHintProvider.

    Returns False when pylsp's server class is not where we expect it; the
    experimental-capabilities hook then announces the provider.
    """
    try:
        from pylsp import python_lsp
        _original = python_lsp.PythonLSPServer.capabilities

        def _patched(self):
            caps = _original(self)
            caps.setdefault("inlayHintProvider", dict(_INLAY_HINT_PROVIDER))
            return caps

        python_lsp.PythonLSPServer.capabilities = _patched
        log.info("pylsp_ruby_inlay_hints: capabilities injected into PythonLSPServer")
        return True
    except Exception as e:  # pragma: no cover
        log.warning(
            "pylsp_ruby_inlay_hints: capability injection failed (%s) "
            "- falling back to pylsp_experimental_capabilities",
            e,
        )
        return False


# True -> proper capabilities announced
# False -> fallback to pylsp_experimental_capabilities
_CAPS_INJECTED = _inject_capabilities()


@hookimpl
def pylsp_settings(config) -> dict:
    """Declare default configuration for this plugin.

    Every hint kind is off until the user opts in, either per kind or with
    ``enableAll``.
    """
    return {"plugins": {PLUGIN_NAME: dict(DEFAULT_SETTINGS)}}


@hookimpl
def pylsp_experimental_capabilities(config, workspace) -> dict:
    """Advertise inlayHintProvider when capability injection failed.

    If _CAPS_INJECTED is True the capability is already in the proper channel
    and this hook returns an empty dict to avoid announcing it twice.
    """
    if _CAPS_INJECTED:
        return {}

    settings = config.plugin_settings(PLUGIN_NAME)
    if not settings.get("enabled", True):
        return {}

    log.info("pylsp_ruby_inlay_hints: announcing inlayHintProvider via experimental fallback")
    return {"inlayHintProvider": dict(_INLAY_HINT_PROVIDER)}


@hookimpl
def pylsp_dispatchers(config, workspace) -> dict:
    """Register the textDocument/inlayHint handler."""
    settings = config.plugin_settings(PLUGIN_NAME)

    dispatch: Dict[str, Any] = {}
    if not settings.get("enabled", True):
        return dispatch

    def _inlay_hint(params) -> List[dict]:
        # pylsp_jsonrpc calls handlers with the raw params dict as a single
        # positional argument
        if not isinstance(params, dict):
            return []

        text_doc = params.get("textDocument") or {}
        uri = text_doc.get("uri")
        if not uri or not _is_ruby_uri(uri):
            return []

        try:
            range_ = RequestedRange.from_lsp(params.get("range"))
            document = workspace.get_document(uri)
            # Re-read settings per request so didChangeConfiguration applies
            hints_config = RequestConfig(config.plugin_settings(PLUGIN_NAME))
            return compute_inlay_hints(document.source, range_, hints_config)
        except Exception as e:
            log.error("pylsp_ruby_inlay_hints: failed for %s: %s", uri, e)
            return []

    dispatch["textDocument/inlayHint"] = _inlay_hint
    return dispatch


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _is_ruby_uri(uri: str) -> bool:
    """Return True if *uri* names a Ruby source file (by suffix or well-known name)."""
    name = os.path.basename(uris.to_fs_path(uri))
    return name in _RUBY_FILENAMES or name.endswith(_RUBY_SUFFIXES)
