"""pitchanalyzer: post-tonal set-class analysis of ABC note collections."""

__version__ = "1.1.1"
