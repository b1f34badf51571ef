"""oxidoc - offline documentation lookup for Rust crates."""

__version__ = "0.1.0"
