"""Caption compositor package.

This package contains the modules behind the HTTP service: settings,
error types, font loading, image source resolution, the caption
compositing routine itself, upload handling and on-disk storage of the
resulting artifacts. The FastAPI application that wires them together
lives in ``main.py`` at the project root.
"""
