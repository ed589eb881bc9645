"""
Automated verification for ingested tournament matches.
Ordered pure checks over scores, games and matches, the engine that cascades
them over one match tree, and the verification state machine.
"""
