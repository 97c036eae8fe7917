"""
Gitorum - a forum stored as signed files in a git repository.

Posts are Ed25519-signed markdown files with TOML front matter; categories,
threads, member keys and join requests are directories and files in the
repository, and replicas converge through ordinary git push and pull.
"""

__version__ = "0.1.0"
