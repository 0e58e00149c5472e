"""Two-phase cavern exploration game engine.

The engine digs a pair of weighted caverns from a seed, drives a solver
through the FIND and SCRAM phases under wall-clock deadlines and scores the
result.
"""

__version__ = "0.1.0"
