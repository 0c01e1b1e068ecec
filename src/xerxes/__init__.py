"""Xerxes: periodic particle-field simulator.

Advances point particles under the self-consistent potential of their own
mass density on a periodic box, with the particle population striped across
a group of cooperating worker processes.
"""

__version__ = "0.3.0"
