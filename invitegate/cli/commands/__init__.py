"""
InviteGate CLI command groups.
"""
