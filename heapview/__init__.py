"""Call trees, caller/callee data, charts, size histograms and flame graphs for heap traces."""

__version__ = "0.1.0"