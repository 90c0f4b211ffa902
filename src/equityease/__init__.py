"""equityease: multi-provider price caching for a leveraged-ETF portfolio tracker."""

__version__ = "0.1.0"
