"""Data layer - schemas shared across the pipeline."""
