"""Test package for the aim trainer.

The core tests drive the trial session and the reaction analysis headlessly
with a fake clock and seeded RNGs.  The smoke test runs the pygame shell with
SDL's dummy drivers so no real window opens.  Run ``pytest`` from the project
root.
"""
