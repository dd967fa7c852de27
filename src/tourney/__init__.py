"""
Tournament engine: round-robin pairing, single elimination and event brackets,
group match lifecycle and the tournament aggregate that ties them together.
"""
