"""Classification, impact resolution, confidence policy, and decision stages.

Submodules are imported directly (``diffscope.planning.pipeline``); the
configuration layer depends on ``planning.globs``, so this package stays empty
at import time.
"""
