"""Keep a software catalog's repository metadata in sync with GitHub and GitLab."""

__version__ = "0.1.0"
