"""
nodeform: branching survey graphs and their traversal engine.

A survey is a directed graph of typed question nodes. A respondent's run
walks that graph one answer at a time, collecting a score and a visited
path, with support for going back.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Rendering or styling of questions
    - Storage backends
    - Authentication or sessions

Collaborators hand in a ``Survey`` and receive a ``Result``.
"""

__version__ = "0.1.0"
