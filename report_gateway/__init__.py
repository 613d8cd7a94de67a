"""Flask gateway serving fixed Google Analytics reports as JSON."""

__version__ = "0.1.0"
