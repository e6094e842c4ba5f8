"""
botflow: visual plugin graphs compiled into sandboxed bot routines.

Turns a node/edge graph authored in a drag-and-drop editor into an
executable routine, and gates which routines may ever run.
"""

__version__ = "0.1.0"
