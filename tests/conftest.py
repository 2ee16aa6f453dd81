"""Fake mwclient objects shared by the bot tests."""

from __future__ import annotations

import pytest


class FakePage:
    def __init__(self, name, text="", redirect=False, target=None, save_errors=None, fresh_text=None):
        self.name = name
        self._text = text
        self.fresh_text = fresh_text
        self.redirect = redirect
        self.target = target
        self.save_errors = list(save_errors or [])
        self.saves = []

    def text(self, cache=True):
        if not cache and self.fresh_text is not None:
            return self.fresh_text
        return self._text

    def resolve_redirect(self):
        return self.target

    def save(self, text, summary=None, minor=False, bot=True):
        if self.save_errors:
            raise self.save_errors.pop(0)
        self.saves.append({"text": text, "summary": summary, "minor": minor, "bot": bot})
        self._text = text


class FakeSite:
    def __init__(self, pages=None, api_results=None):
        self.pages = dict(pages or {})
        self.api_results = list(api_results or [])
        self.api_calls = []

    def api(self, action, **params):
        self.api_calls.append((action, dict(params)))
        return self.api_results.pop(0)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    import uncategorize_afc

    monkeypatch.setattr(uncategorize_afc.time, "sleep", lambda seconds: None)
