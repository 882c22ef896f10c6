"""Bitbucket Server as a CI source: repository resolution and lightweight checkout."""

__version__ = "0.1.0"
