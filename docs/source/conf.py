# Configuration file for the Sphinx documentation builder.

import os
import sys


# -- Path setup --------------------------------------------------------------

# To find the cornichon module
sys.path.insert(0, os.path.abspath("../.."))

# -- Project information -----------------------------------------------------

project = "Cornichon"
copyright = "2026, The Cornichon authors"
author = "The Cornichon authors"

from cornichon import __version__ as version

release = version

# -- General configuration ---------------------------------------------------

master_doc = "index"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.intersphinx",
    "sphinx.ext.doctest",
    "numpydoc",
]

# -- Options for numpydoc/autodoc --------------------------------------------

# Fixes autosummary errors
numpydoc_show_class_members = False

autodoc_member_order = "bysource"

add_module_names = False

autodoc_typehints = "none"

# -- Options for intersphinx -------------------------------------------------

intersphinx_mapping = {
    "python": ("http://docs.python.org/3", None),
}


# -- Options for HTML output -------------------------------------------------

html_theme = "nature"


# -- Options for PDF output --------------------------------------------------

# A small document so no need for chapters etc.
latex_theme = "howto"

# Show page numbers in references
latex_show_pagerefs = True

# Don't include a module index (the main index should be sufficient)
latex_domain_indices = False

latex_elements = {
    "papersize": "a4paper",
}
