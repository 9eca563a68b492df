"""Sitemap-driven SEO audit engine."""

__version__ = "0.1.0"
