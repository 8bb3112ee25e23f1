"""Sphinx configuration for Contact Manager API documentation."""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(".."))

project = "Contact Manager API"
current_year = datetime.now().year
copyright = f"{current_year}, Contact Manager"
author = "Contact Manager Team"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]


templates_path = ["_templates"]
exclude_patterns: list[str] = []

html_theme = "alabaster"

html_static_path: list[str] = []
