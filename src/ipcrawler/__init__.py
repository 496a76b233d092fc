"""ipcrawler - dependency-aware orchestration of network security scanners."""

__version__ = "0.2.0"
