"""Profiles for popular documentation platforms.

A matching profile supplies tuned selectors and short-circuits strategy
selection with a known-good recommendation."""
from __future__ import annotations

import re
from typing import Optional, Tuple

from .models import SiteProfile, StrategyName

SITE_PROFILES: Tuple[SiteProfile, ...] = (
    SiteProfile(
        name="Vue.js Documentation",
        patterns=(r"vuejs\.org",),
        navigation=".sidebar-links, .sidebar, nav.nav-links",
        content=".vp-doc, .theme-default-content, .content, main",
        exclude=(".page-nav", ".edit-link"),
        recommended_strategy=StrategyName.CONFIGURABLE,
        notes="VuePress/VitePress documentation with sidebar navigation",
    ),
    SiteProfile(
        name="React Documentation",
        patterns=(r"react\.dev", r"reactjs\.org"),
        navigation="nav[role=\"navigation\"], .sidebar, nav",
        content="article, main, .markdown",
        exclude=(".sidebar-nav", "footer"),
        recommended_strategy=StrategyName.FORMAT,
        notes="Modern React-based documentation site",
    ),
    SiteProfile(
        name="MDN Web Docs",
        patterns=(r"developer\.mozilla\.org",),
        navigation=".sidebar, .document-toc, nav.crumbs",
        content=".main-page-content, #content, article",
        exclude=(".document-toc", ".page-footer", ".newsletter-container"),
        recommended_strategy=StrategyName.PERFORMANCE,
        notes="Extensive documentation requiring performance optimization",
    ),
    SiteProfile(
        name="Docker Documentation",
        patterns=(r"docs\.docker\.com",),
        navigation=".sidebar, nav.docs-nav, .navigation",
        content="main, .docs-content, article",
        exclude=(".toc", "footer"),
        recommended_strategy=StrategyName.CONFIGURABLE,
        notes="Standard documentation structure with clear navigation",
    ),
    SiteProfile(
        name="Node.js Documentation",
        patterns=(r"nodejs\.org/(docs|api)",),
        navigation="#column2, #toc, nav",
        content="#apicontent, #content, main",
        exclude=("#toc",),
        recommended_strategy=StrategyName.PERFORMANCE,
        notes="API reference documentation with extensive content",
    ),
    SiteProfile(
        name="GitHub Documentation",
        patterns=(r"docs\.github\.com",),
        navigation="nav[aria-label=\"Product sidebar\"], .sidebar, nav",
        content="main article, .markdown-body, main",
        exclude=(".TableOfContents",),
        recommended_strategy=StrategyName.CONFIGURABLE,
        notes="GitHub-flavored markdown with consistent structure",
    ),
    SiteProfile(
        name="Python Documentation",
        patterns=(r"docs\.python\.org",),
        navigation=".sphinxsidebarwrapper, .toctree-wrapper",
        content="div.body, [role=\"main\"]",
        exclude=(".headerlink",),
        recommended_strategy=StrategyName.PERFORMANCE,
        notes="Sphinx-generated reference with a large page set",
    ),
)


def detect_site(url: str) -> Optional[SiteProfile]:
    for profile in SITE_PROFILES:
        if any(re.search(p, url) for p in profile.patterns):
            return profile
    return None
