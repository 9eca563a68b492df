"""Shared schema keys to avoid magic strings across audit modules."""

from __future__ import annotations

# Issue categories (report contract, do not rename)
K_NON200 = "non200"
K_REDIRECT_CHAINS = "redirectChains"
K_CANONICAL_MISMATCH = "canonicalMismatch"
K_NOINDEX_IN_SITEMAP = "noindexInSitemap"
K_DUPLICATE_TITLE = "duplicateTitle"
K_DUPLICATE_DESCRIPTION = "duplicateDescription"
K_VERY_SHORT = "veryShort"
K_ORPHAN = "orphan"
K_BAD_LINKS = "badLinks"
K_SCHEMA_ERRORS = "schemaErrors"
K_HREFLANG_ERRORS = "hreflangErrors"
K_NEAR_DUPLICATE = "nearDuplicate"

K_ISSUE_CATEGORIES = (
    K_NON200,
    K_REDIRECT_CHAINS,
    K_CANONICAL_MISMATCH,
    K_NOINDEX_IN_SITEMAP,
    K_DUPLICATE_TITLE,
    K_DUPLICATE_DESCRIPTION,
    K_VERY_SHORT,
    K_ORPHAN,
    K_BAD_LINKS,
    K_SCHEMA_ERRORS,
    K_HREFLANG_ERRORS,
    K_NEAR_DUPLICATE,
)

# Any non-empty category here flips the run verdict to failing
K_HARD_FAIL_CATEGORIES = (
    K_NON200,
    K_DUPLICATE_TITLE,
    K_DUPLICATE_DESCRIPTION,
    K_CANONICAL_MISMATCH,
    K_NOINDEX_IN_SITEMAP,
    K_VERY_SHORT,
)

# Page classifications
K_TYPE_STATIC = "static"
K_TYPE_CATEGORY = "category"
K_TYPE_CALCULATOR = "calculator"
K_TYPE_GUIDE = "guide"
K_TYPE_RESOURCE = "resource"

# Common entry/report keys
K_URL = "url"
K_FINAL_URL = "final_url"
K_STATUS = "status"
K_TITLE = "title"
K_DESCRIPTION = "description"
K_URLS = "urls"
K_ISSUES = "issues"
K_PAGES = "pages"
