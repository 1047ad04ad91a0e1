"""SEO Hub back end: SEOWorks webhook intake, package usage and notifications."""

__version__ = "0.1.0"
