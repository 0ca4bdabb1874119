"""Scribe static blog generator.

Scribe turns a folder of Markdown posts with YAML front-matter into a
static HTML site that can be published on GitHub Pages as-is.

The content store (``content``, ``extractors``, ``renderers``) reads the
source tree into Post and Page records. The site renderer (``templates``,
``listing``, ``feeds``, ``static``) writes them out through the theme's
layouts, and ``build`` orchestrates the two. ``server`` previews the
result on localhost with live reload, and ``cli`` is the command-line
entry point.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
