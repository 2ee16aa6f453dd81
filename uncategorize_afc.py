#!/usr/bin/env python3
"""
uncategorize_afc.py
===================
Disables the categories on AfC drafts while they are still drafts, per
[[WP:DRAFTNOCAT]] / [[WP:USERNOCAT]].

For every page in [[Category:AfC submissions with categories]] in the
User (2) and Draft (118) namespaces, excluding redirects:
  - [[Category:Foo]] becomes [[:Category:Foo]]
  - Draft categories and {{Draft categories|...}} are left alone
  - The result is saved as a minor bot edit

Pages that fail to read or save are reported and the run carries on
(use --stop-on-error to abort on the first failure instead).

Usage:
    python uncategorize_afc.py [--dry] [--show-text] [--max-edits N]
                               [--stop-on-error] [--category NAME] [--run-tag TEXT]
"""

import argparse
import io
import os
import sys
import time
from collections import namedtuple

import mwclient
from mwclient.errors import APIError, LoginError
from requests.exceptions import RequestException

from draft_categories import count_live_categories, suppress_categories

WIKI_URL = os.getenv("WIKI_URL", "zh.wikipedia.org")
WIKI_PATH = os.getenv("WIKI_PATH", "/w/")
USERNAME = os.getenv("WIKI_USERNAME", "")
PASSWORD = os.getenv("WIKI_PASSWORD", "")
THROTTLE = float(os.getenv("AFC_THROTTLE", "1.5"))
USER_AGENT = "AfcUncategorizeBot/1.0 (Task 3; zh.wikipedia.org)"

TRACKING_CATEGORY = "AfC_submissions_with_categories"
NAMESPACES = (2, 118)
EDIT_SUMMARY = (
    "Task 3: Disable the categories on this page while it is still a draft, "
    "per [[WP:DRAFTNOCAT]]/[[WP:USERNOCAT]]"
)

EDITED = "edited"
UNCHANGED = "unchanged"
DRY_RUN = "dry-run"
FAILED = "failed"

DraftRow = namedtuple("DraftRow", ["pageid", "namespace", "title"])
PageResult = namedtuple("PageResult", ["title", "status", "error"])


class BatchReport:
    """Per-page outcomes of one run, in processing order."""

    def __init__(self):
        self.results = []

    def add(self, title, status, error=None):
        self.results.append(PageResult(title, status, error))

    def count(self, status):
        return sum(1 for r in self.results if r.status == status)

    @property
    def edited(self):
        return self.count(EDITED)

    @property
    def failed(self):
        return [r for r in self.results if r.status == FAILED]

    @property
    def ok(self):
        return not self.failed

    def summary(self):
        return (
            f"Processed: {len(self.results)} | Edited: {self.edited} | "
            f"Dry run: {self.count(DRY_RUN)} | Unchanged: {self.count(UNCHANGED)} | "
            f"Failed: {len(self.failed)}"
        )


def connect(url=WIKI_URL, path=WIKI_PATH, username=USERNAME, password=PASSWORD):
    """Return a logged-in mwclient.Site."""
    site = mwclient.Site(url, path=path, clients_useragent=USER_AGENT)
    site.login(username, password)
    return site


def iter_categorized_drafts(site, category=TRACKING_CATEGORY, namespaces=NAMESPACES):
    """Yield a DraftRow for every non-redirect page in category within namespaces."""
    params = {
        "generator": "categorymembers",
        "gcmtitle": f"Category:{category}",
        "gcmnamespace": "|".join(str(ns) for ns in namespaces),
        "gcmtype": "page",
        "gcmlimit": "max",
        "prop": "info",
    }
    while True:
        result = site.api("query", **params)
        pages = result.get("query", {}).get("pages", {})
        # formatversion=1 gives a dict keyed by page id, 2 gives a list
        if isinstance(pages, dict):
            pages = pages.values()
        for info in pages:
            if "redirect" in info:
                continue
            yield DraftRow(int(info["pageid"]), int(info["ns"]), info["title"])
        if "continue" in result:
            params.update(result["continue"])
        else:
            break


def read_page_text(site, title, follow_redirects=False):
    """Return (page, text) for the latest revision of title."""
    page = site.pages[title]
    if follow_redirects and page.redirect:
        page = page.resolve_redirect()
    return page, page.text()


def save_page_text(page, text, summary, minor=True):
    """Save text to page as a bot edit. mwclient errors propagate."""
    page.save(text, summary=summary, minor=minor, bot=True)


def uncategorize_page(site, row, dry_run, summary=EDIT_SUMMARY, show_text=False):
    """Suppress the live categories on one draft. Returns the outcome status.

    An edit conflict is retried once, re-applying the transform to the
    freshly fetched text.
    """
    page, text = read_page_text(site, row.title, follow_redirects=False)
    new_text = suppress_categories(text)

    if new_text == text:
        return UNCHANGED

    if dry_run:
        print(f"  DRY RUN: would disable {count_live_categories(text)} categories", flush=True)
        if show_text:
            print(text)
            print("-" * 60)
            print(new_text)
        return DRY_RUN

    try:
        save_page_text(page, new_text, summary)
    except APIError as e:
        if e.code != "editconflict":
            raise
        print(f"  CONFLICT on {page.name}, retrying...", flush=True)
        time.sleep(5)
        fresh = page.text(cache=False)
        fresh_new = suppress_categories(fresh)
        if fresh_new == fresh:
            return UNCHANGED
        save_page_text(page, fresh_new, summary)
    return EDITED


def run_batch(site, rows, dry_run, summary=EDIT_SUMMARY, max_edits=0,
              stop_on_error=False, show_text=False, throttle=THROTTLE):
    """Process rows in order and return a BatchReport.

    A page that fails is recorded and the batch moves on, unless
    stop_on_error is set, in which case the error propagates.
    """
    report = BatchReport()
    rows = list(rows)
    total = len(rows)

    for i, row in enumerate(rows, 1):
        if max_edits and report.edited >= max_edits:
            print(f"Reached max edits ({max_edits}); stopping run.", flush=True)
            break

        print(f"[{i}/{total}] {row.title}", flush=True)
        try:
            status = uncategorize_page(site, row, dry_run, summary=summary, show_text=show_text)
        except Exception as e:
            if stop_on_error:
                raise
            print(f"  ERROR: {e}", flush=True)
            report.add(row.title, FAILED, str(e))
            continue

        report.add(row.title, status)
        if status == EDITED:
            print("  EDITED", flush=True)
            time.sleep(throttle)
        elif status == UNCHANGED:
            print("  SKIP (no live categories)", flush=True)

    return report


def build_parser():
    parser = argparse.ArgumentParser(
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dry", "--dry-run", dest="dry_run", action="store_true",
                        help="Report what would change without saving")
    parser.add_argument("--show-text", action="store_true",
                        help="In dry-run mode, print the old and new page text")
    parser.add_argument("--max-edits", type=int, default=0,
                        help="Max edits to save in this run (0 = no limit)")
    parser.add_argument("--stop-on-error", action="store_true",
                        help="Abort the run on the first page that fails")
    parser.add_argument("--category", default=TRACKING_CATEGORY,
                        help="Tracking category to work through")
    parser.add_argument("--run-tag", default="",
                        help="Edit summary suffix (e.g. a run link)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    summary = f"{EDIT_SUMMARY} {args.run_tag}".strip()

    print("=" * 60)
    print("DISABLE CATEGORIES ON AFC DRAFTS" + (" (DRY RUN)" if args.dry_run else ""))
    print("=" * 60)
    print(f"Start time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n")

    try:
        print(f"Connecting to {WIKI_URL}...", flush=True)
        site = connect()
    except (LoginError, RequestException) as e:
        print(f"Login failed: {e}", flush=True)
        return 1
    print(f"Logged in as {USERNAME}\n")

    print(f"Fetching pages in [[Category:{args.category}]]...", flush=True)
    rows = list(iter_categorized_drafts(site, args.category))
    print(f"Found {len(rows)} categorized drafts\n")

    report = run_batch(
        site,
        rows,
        args.dry_run,
        summary=summary,
        max_edits=args.max_edits,
        stop_on_error=args.stop_on_error,
        show_text=args.show_text,
    )

    print("\n" + "=" * 60)
    print(report.summary())
    if report.failed:
        print("FAILED PAGES:")
        for result in report.failed[:10]:
            print(f"  {result.title}: {result.error}")
        if len(report.failed) > 10:
            print(f"  ... and {len(report.failed) - 10} more")
    print(f"End time: {time.strftime('%Y-%m-%d %H:%M:%S')}")
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8")
    sys.exit(main())
