"""
Street Art CTF ("Chomp") game backend.
Scan street art, claim it for your team, collect bonuses and achievements.
"""
