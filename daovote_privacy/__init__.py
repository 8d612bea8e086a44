"""Anonymous DAO membership proofs: credentials, Merkle paths, nullifiers and relay submission."""

__version__ = "0.1.0"
