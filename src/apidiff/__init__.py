"""apidiff: render API description diffs as compact JSON."""

__version__ = "0.1.0"
