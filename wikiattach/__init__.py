"""WikiAttach: attachment ingestion and rendering for a collaborative wiki."""

__version__ = "0.3.0"
