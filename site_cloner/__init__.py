"""
Site Cloner

Mirrors a website for offline use and packages the mirror as a zip archive.
"""

__version__ = "1.0.0"
__description__ = "Crawl a website to a bounded depth, rewrite it for offline use and zip it"
