"""
CommandZone services.

Card facts, legality gating, board transitions, statistics, reordering,
catalog access, decklist import and the optimistic deck session.
Import from the submodules directly.
"""
