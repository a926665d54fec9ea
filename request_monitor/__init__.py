"""request-monitor — capture anonymous front-end visits and report on them."""

__version__ = "1.0.0"
