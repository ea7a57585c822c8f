"""Robot detector service for spotting mechanical trading patterns.

Aggregate live trade ticks per instrument, group recent samples by lot size,
and flag groups that trade at near-constant intervals as robots. Detected
robots are tracked until they fall silent and reported once on creation.
"""
