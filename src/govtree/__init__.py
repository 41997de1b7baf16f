"""govtree — community governance recorded in a versioned tree.

Motions (concerns and proposals) carry quadratic-voting polls. Tallies
drive motion state, and motion policies turn outcomes into refunds,
rewards and notices. All state is committed to a branch of a versioned
store.
"""

__version__ = "0.1.0"
