"""Domain layer for timeledger.

Contains entity contracts and the pure stats engine.
This layer has no dependencies on infrastructure concerns.
"""
